#!/usr/bin/env python3
"""
iOS Build Tool - Main Entry Point

Runs the build of an Xcode project on a CI agent. Configuration is read from
the environment (see iosbuilder/config.py).

The build process includes:
1. CocoaPods installation
2. Signing identity and keychain setup
3. Compilation with xcodebuild
4. Packaging of .app bundles into ipa files
5. Archiving of dSYM bundles
6. Keychain removal

The first failing stage stops the build; the keychain is removed in any case.
"""

import os
import sys
import traceback
from typing import Mapping, Optional, TextIO

from iosbuilder import (
    BuildOpts, IOSBuilder, CredentialArchive, Mobileprovision,
    BuildError, load_opts,
)


def run(
    opts: BuildOpts,
    listener: Optional[TextIO] = None,
    environ: Optional[Mapping[str, str]] = None,
    **builder_args,
) -> int:
    """Execute the build stages and return the overall exit status.

    environ is the build environment used for `$VAR` expansion; it should be
    the mapping opts were loaded from.
    """
    listener = listener or sys.stdout
    environ = os.environ if environ is None else environ
    builder = IOSBuilder(
        opts.pod, opts.security, opts.xcodebuild, opts.xcrun,
        opts.workspace, dict(environ), opts.build_directory,
        listener=listener, **builder_args,
    )

    if opts.project_root is not None:
        print("Installing pods...", file=listener)
        result = builder.install_pods(opts.project_root)
        if result != 0:
            print(f"ERROR: pod failed with status code {result}", file=listener)
            return result

    try:
        if opts.code_sign:
            print("Installing signing identity...", file=listener)
            try:
                archive = CredentialArchive.from_file(opts.p12_file, opts.p12_password)
                mobileprovision = Mobileprovision.from_file(opts.mobileprovision_file)
            except (OSError, BuildError):
                traceback.print_exc(file=listener)
                return 1
            if builder.install_identity(archive, mobileprovision) != 0:
                print("ERROR: Could not install signing identity", file=listener)
                return 1

        print("Building...", file=listener)
        result = builder.run_xcodebuild(
            opts.xcworkspace, opts.xcodeproj, opts.target, opts.scheme,
            opts.configuration, opts.sdk, opts.additional_parameters, opts.code_sign,
        )
        if result != 0:
            print(f"ERROR: xcodebuild failed with status code {result}", file=listener)
            return result

        if opts.build_ipa:
            print("Packaging ipa...", file=listener)
            if builder.build_ipa(opts.ipa_name_template) != 0:
                print("ERROR: Could not package ipa", file=listener)
                return 1

        if opts.zip_dsym:
            print("Archiving dSYM...", file=listener)
            if builder.zip_dsym(opts.dsym_name_template) != 0:
                print("ERROR: Could not archive dSYM", file=listener)
                return 1
    finally:
        print("Cleaning up...", file=listener)
        builder.cleanup()

    print("Build completed successfully", file=listener)
    return 0


def main():
    """Main entry point for the build tool."""
    try:
        environ = dict(os.environ)
        opts = load_opts(environ)
        sys.exit(run(opts, environ=environ))
    except BuildError as e:
        print(f"ERROR: {e}")
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
