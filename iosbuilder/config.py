#!/usr/bin/env python3
"""
Build configuration read from the environment.

Every option comes from an `IOSBUILDER_*` variable (the workspace from
`WORKSPACE`, as set by the CI job). Blank variables count as unset.
"""

import os
from pathlib import Path
from typing import Mapping, NamedTuple, Optional

from .crypto import decrypt_secret
from .utils import ConfigError, optional

TRUE_VALUES = ("1", "true", "yes", "on")


class BuildOpts(NamedTuple):
    """Configuration options for one build."""
    workspace: Path
    pod: str
    security: str
    xcodebuild: str
    xcrun: str
    build_directory: str
    project_root: Optional[str]
    xcworkspace: Optional[str]
    xcodeproj: Optional[str]
    target: Optional[str]
    scheme: Optional[str]
    configuration: Optional[str]
    sdk: str
    additional_parameters: Optional[str]
    code_sign: bool
    p12_file: Optional[Path]
    p12_password: Optional[str]
    mobileprovision_file: Optional[Path]
    ipa_name_template: str
    dsym_name_template: str
    build_ipa: bool
    zip_dsym: bool


def _flag(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in TRUE_VALUES


def load_opts(environ: Optional[Mapping[str, str]] = None) -> BuildOpts:
    """Read BuildOpts from environ (os.environ by default)."""
    if environ is None:
        environ = os.environ

    def get(name: str, default: Optional[str] = None) -> Optional[str]:
        value = optional(environ.get(name))
        return default if value is None else value

    code_sign = _flag(get("IOSBUILDER_CODE_SIGN"), False)
    p12_file = get("IOSBUILDER_P12")
    p12_password = get("IOSBUILDER_P12_PASSWORD")
    mobileprovision_file = get("IOSBUILDER_MOBILEPROVISION")

    if code_sign:
        missing = [
            name for name, value in (
                ("IOSBUILDER_P12", p12_file),
                ("IOSBUILDER_MOBILEPROVISION", mobileprovision_file),
            ) if value is None
        ]
        if missing:
            raise ConfigError(f"Code signing is enabled but {', '.join(missing)} is not set")

    secret_key = get("IOSBUILDER_SECRET_KEY")
    if secret_key is not None and p12_password is not None:
        p12_password = decrypt_secret(p12_password, secret_key)

    return BuildOpts(
        workspace=Path(get("WORKSPACE", os.getcwd())),
        pod=get("IOSBUILDER_POD", "pod"),
        security=get("IOSBUILDER_SECURITY", "/usr/bin/security"),
        xcodebuild=get("IOSBUILDER_XCODEBUILD", "/usr/bin/xcodebuild"),
        xcrun=get("IOSBUILDER_XCRUN", "/usr/bin/xcrun"),
        build_directory=get("IOSBUILDER_BUILD_DIR", "build"),
        project_root=get("IOSBUILDER_PROJECT_ROOT"),
        xcworkspace=get("IOSBUILDER_XCWORKSPACE"),
        xcodeproj=get("IOSBUILDER_XCODEPROJ"),
        target=get("IOSBUILDER_TARGET"),
        scheme=get("IOSBUILDER_SCHEME"),
        configuration=get("IOSBUILDER_CONFIGURATION"),
        sdk=get("IOSBUILDER_SDK", "iphoneos"),
        additional_parameters=get("IOSBUILDER_ADDITIONAL_PARAMETERS"),
        code_sign=code_sign,
        p12_file=Path(p12_file) if p12_file else None,
        p12_password=p12_password,
        mobileprovision_file=Path(mobileprovision_file) if mobileprovision_file else None,
        ipa_name_template=get("IOSBUILDER_IPA_NAME", "$APP_NAME"),
        dsym_name_template=get("IOSBUILDER_DSYM_NAME", "$APP_NAME"),
        build_ipa=_flag(get("IOSBUILDER_BUILD_IPA"), True),
        zip_dsym=_flag(get("IOSBUILDER_ZIP_DSYM"), True),
    )
