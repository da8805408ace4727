#!/usr/bin/env python3
"""
Per-build code signing setup and teardown.

The provisioner picks the identity from the credential archive that the
provisioning profile authorizes, imports it into a keychain created for this
build only, and installs the profile on the agent. `cleanup` deletes the
keychain again.

Two different release rules apply:

- the exported identity file is always removed before `install_identity`
  returns; if the removal itself fails, the installation fails;
- deleting the keychain is best effort; failures are logged and swallowed.
"""

import os
import sys
import tempfile
import traceback
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, TextIO

from .commands import SigningFlags
from .security import (
    Execute, ProvisioningRegistry,
    security_create_keychain, security_import,
    security_unlock_keychain, security_delete_keychain,
)
from .signing import CredentialArchive, Identity, Mobileprovision
from .utils import StrPath, rand_str


def new_password() -> str:
    return rand_str(32)


def new_keychain_name() -> str:
    return f"ios-builder-{rand_str(16)}.keychain"


@contextmanager
def exported_identity(identity: Identity, dir: StrPath, password: str):
    """Write identity to a unique .p12 file in dir and remove it on exit."""
    fd, path = tempfile.mkstemp(prefix="identity", suffix=".p12", dir=str(dir))
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(identity.save(password))
        yield Path(path)
    finally:
        os.remove(path)


class SigningProvisioner:
    """Owns the signing state of one build."""

    def __init__(
        self,
        security: str,
        workspace: StrPath,
        execute: Execute,
        registry: ProvisioningRegistry,
        listener: Optional[TextIO] = None,
    ):
        self.security = security
        self.workspace = Path(workspace)
        self.execute = execute
        self.registry = registry
        self.listener = listener or sys.stdout
        self.identity: Optional[Identity] = None
        self.mobileprovision: Optional[Mobileprovision] = None
        self.keychain: Optional[str] = None

    def install_identity(self, archive: CredentialArchive, mobileprovision: Mobileprovision) -> int:
        """Set up signing for this build. Returns 0 on success, 1 on failure; never raises.

        Calling it again first deletes the keychain of the previous call.
        """
        self.cleanup()
        self.identity = None
        self.mobileprovision = None
        try:
            identity = archive.choose_identity(mobileprovision.read_certificates(self.listener))
        except Exception:
            traceback.print_exc(file=self.listener)
            return 1
        if identity is None:
            print(
                f"No identity matches provisioning profile {mobileprovision.uuid}, building unsigned",
                file=self.listener,
            )
            return 0

        try:
            self._install_keychain(identity)
        except Exception:
            traceback.print_exc(file=self.listener)
            return 1

        try:
            path = self.registry.install(mobileprovision)
            print(f"Installed provisioning profile {path}", file=self.listener)
        except Exception:
            traceback.print_exc(file=self.listener)
            return 1

        self.identity = identity
        self.mobileprovision = mobileprovision
        return 0

    def _install_keychain(self, identity: Identity):
        identity_password = new_password()
        with exported_identity(identity, self.workspace, identity_password) as identity_file:
            keychain = new_keychain_name()
            keychain_password = new_password()
            print(f"Creating keychain {keychain} for {identity.common_name}", file=self.listener)
            security_create_keychain(self.execute, self.security, keychain, keychain_password)
            self.keychain = keychain
            security_import(self.execute, self.security, identity_file, keychain, identity_password)
            security_unlock_keychain(self.execute, self.security, keychain, keychain_password)

    def signing_flags(self) -> SigningFlags:
        return SigningFlags(
            profile_uuid=self.mobileprovision.uuid if self.mobileprovision else None,
            common_name=self.identity.common_name if self.identity else None,
            keychain=self.keychain if self.identity else None,
        )

    def cleanup(self):
        """Delete the keychain created by install_identity, if any. Never raises."""
        if self.keychain is None:
            return
        keychain, self.keychain = self.keychain, None
        try:
            print(f"Deleting keychain {keychain}", file=self.listener)
            security_delete_keychain(self.execute, self.security, keychain)
        except Exception as e:
            print(f"Warning: Failed to remove keychain: {e}", file=self.listener)
            traceback.print_exc(file=self.listener)
