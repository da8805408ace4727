#!/usr/bin/env python3
"""
iOS Build Library

This library provides the components of an iOS build on a CI agent:
- utils: process launching, environment expansion, error types
- commands: argument lists for pod, xcodebuild, xcrun and security
- naming: output file names from `$APP_NAME` templates
- signing: PKCS#12 credential archives and provisioning profiles
- security: keychain operations and provisioning profile installation
- provisioner: per-build signing setup and teardown
- builder: the build stages
- config / crypto: configuration from the environment and secret decryption

Example usage:
    from iosbuilder import IOSBuilder

    builder = IOSBuilder("pod", "/usr/bin/security", "/usr/bin/xcodebuild",
                         "/usr/bin/xcrun", workspace, os.environ, "build")
    try:
        builder.install_identity(archive, mobileprovision)
        if builder.run_xcodebuild(xcworkspace_path="App.xcworkspace", scheme="App",
                                  code_sign=True) == 0:
            builder.build_ipa("$APP_NAME")
    finally:
        builder.cleanup()
"""

from .builder import IOSBuilder, BuildContext
from .config import BuildOpts, load_opts
from .signing import CredentialArchive, Identity, Mobileprovision
from .security import ProvisioningRegistry
from .utils import BuildError, SetupError, ConfigError, SigningError

__version__ = "1.0.0"

__all__ = [
    # Main classes
    'IOSBuilder', 'BuildContext', 'BuildOpts', 'load_opts',

    # Signing material
    'CredentialArchive', 'Identity', 'Mobileprovision', 'ProvisioningRegistry',

    # Errors
    'BuildError', 'SetupError', 'ConfigError', 'SigningError',
]
