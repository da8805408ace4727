#!/usr/bin/env python3
"""
Command line assembly for the external tools.

Every builder here is a pure function returning the argument list; nothing is
executed. Optional values that are `None` or blank are left out entirely
rather than passed as empty flags.
"""

import shlex
from typing import List, NamedTuple, Optional


class SigningFlags(NamedTuple):
    """Code signing state handed to xcodebuild; any part may be absent."""
    profile_uuid: Optional[str] = None
    common_name: Optional[str] = None
    keychain: Optional[str] = None


def _present(value: Optional[str]) -> bool:
    return value is not None and value != ""


def pod_command(pod: str, lockfile_exists: bool) -> List[str]:
    """`pod update` when Podfile.lock is present, `pod install` otherwise."""
    return [pod, "update" if lockfile_exists else "install", "--no-color"]


def xcodebuild_command(
    xcodebuild: str,
    build_dir: str,
    sdk: str,
    xcworkspace: Optional[str] = None,
    xcodeproj: Optional[str] = None,
    target: Optional[str] = None,
    scheme: Optional[str] = None,
    configuration: Optional[str] = None,
    additional_parameters: Optional[str] = None,
    signing: Optional[SigningFlags] = None,
) -> List[str]:
    """Build the xcodebuild argument list.

    The order is fixed: project selection flags, `-sdk`, the build directory
    assignment, the extra parameters and finally the signing assignments.
    `additional_parameters` is split with shell quoting rules, so
    `OTHER_CFLAGS="-DA -DB"` stays one argument. Signing assignments are only
    added when `signing` is given; the profile and the identity are each
    optional within it.
    """
    cmd = [xcodebuild]
    for flag, value in (
        ("-workspace", xcworkspace),
        ("-project", xcodeproj),
        ("-target", target),
        ("-scheme", scheme),
        ("-configuration", configuration),
    ):
        if _present(value):
            cmd.extend([flag, value])
    cmd.extend(["-sdk", sdk])
    cmd.append(f"CONFIGURATION_BUILD_DIR={build_dir}")
    if _present(additional_parameters):
        cmd.extend(shlex.split(additional_parameters))
    if signing is not None:
        if _present(signing.profile_uuid):
            cmd.append(f"PROVISIONING_PROFILE={signing.profile_uuid}")
        if _present(signing.common_name):
            cmd.append(f"CODE_SIGN_IDENTITY={signing.common_name}")
            cmd.append(f"OTHER_CODE_SIGN_FLAGS=--keychain {signing.keychain}")
    return cmd


def package_application_command(xcrun: str, app_name: str, output: str, sdk: str = "iphoneos") -> List[str]:
    """Package an .app bundle (relative to the build directory) into an ipa."""
    return [xcrun, "-sdk", sdk, "PackageApplication", app_name, "-o", output]


# security(1) subcommands used for the per-build keychain

def create_keychain_command(security: str, keychain: str, password: str) -> List[str]:
    return [security, "create-keychain", "-p", password, keychain]


def import_identity_command(security: str, identity_file: str, keychain: str, password: str) -> List[str]:
    # -A lets every application use the imported key without a prompt
    return [security, "import", identity_file, "-k", keychain, "-P", password, "-A"]


def unlock_keychain_command(security: str, keychain: str, password: str) -> List[str]:
    return [security, "unlock-keychain", "-p", password, keychain]


def keychain_settings_command(security: str, keychain: str) -> List[str]:
    # no -t/-l: the keychain never locks on timeout or sleep
    return [security, "set-keychain-settings", keychain]


def key_partition_list_command(security: str, keychain: str, password: str) -> List[str]:
    return [
        security, "set-key-partition-list",
        "-S", "apple-tool:,apple:,codesign:",
        "-s", "-k", password, keychain,
    ]


def delete_keychain_command(security: str, keychain: str) -> List[str]:
    return [security, "delete-keychain", keychain]
