#!/usr/bin/env python3
"""
Keychain management and provisioning profile installation.

Keychain operations go through security(1) via the caller's `execute`
callable so they are streamed to the build log like every other tool. Any
nonzero exit status raises `SigningError`; passwords never appear in the
error message.
"""

from pathlib import Path
from typing import Callable, List

from . import commands
from .signing import Mobileprovision
from .utils import SigningError, StrPath

Execute = Callable[[List[str]], int]

PROFILES_DIR = Path("Library", "MobileDevice", "Provisioning Profiles")


def _check(status: int, cmd: List[str]):
    if status != 0:
        raise SigningError(f"security {cmd[1]} failed with status code {status}")


def security_create_keychain(execute: Execute, security: str, keychain: str, password: str):
    """Create a new keychain protected by password."""
    cmd = commands.create_keychain_command(security, keychain, password)
    _check(execute(cmd), cmd)


def security_import(execute: Execute, security: str, identity_file: StrPath, keychain: str, password: str):
    """Import a PKCS#12 file into keychain."""
    cmd = commands.import_identity_command(security, str(identity_file), keychain, password)
    _check(execute(cmd), cmd)


def security_unlock_keychain(execute: Execute, security: str, keychain: str, password: str):
    """Unlock keychain and keep it unlocked for the rest of the build."""
    for cmd in (
        commands.unlock_keychain_command(security, keychain, password),
        commands.keychain_settings_command(security, keychain),
        commands.key_partition_list_command(security, keychain, password),
    ):
        _check(execute(cmd), cmd)


def security_delete_keychain(execute: Execute, security: str, keychain: str):
    """Delete keychain."""
    cmd = commands.delete_keychain_command(security, keychain)
    _check(execute(cmd), cmd)


class ProvisioningRegistry:
    """The agent's installed provisioning profiles.

    Profiles are stored as `~/Library/MobileDevice/Provisioning Profiles/<UUID>.mobileprovision`.
    This directory is shared by every build on the agent and nothing here
    locks it: two builds installing the same UUID at once race, and the last
    write wins.
    """

    def __init__(self, home: StrPath):
        self.home = Path(home)

    def path_for(self, uuid: str) -> Path:
        return self.home / PROFILES_DIR / f"{uuid}.mobileprovision"

    def install(self, mobileprovision: Mobileprovision) -> Path:
        path = self.path_for(mobileprovision.uuid)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(mobileprovision.data)
        return path
