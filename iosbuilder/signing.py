#!/usr/bin/env python3
"""
Signing material: PKCS#12 credential archives and provisioning profiles.

A provisioning profile lists the developer certificates it authorizes. The
credential archive is searched for the identity whose certificate appears in
that list; the chosen identity is later re-exported to a throwaway PKCS#12
file for `security import`.
"""

import plistlib
import sys
from pathlib import Path
from typing import Any, List, NamedTuple, Optional, Sequence, TextIO, Tuple
from xml.parsers.expat import ExpatError

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

from .utils import SigningError, StrPath


class Identity(NamedTuple):
    """A private key with its certificate and optional chain."""
    key: Any
    certificate: x509.Certificate
    chain: Tuple[x509.Certificate, ...] = ()

    @property
    def common_name(self) -> str:
        names = self.certificate.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
        return str(names[0].value) if names else ""

    def save(self, password: str) -> bytes:
        """Export as PKCS#12 bytes protected by password."""
        # security import rejects the AES/PBES2 archives that BestAvailableEncryption produces
        encryption = (
            serialization.PrivateFormat.PKCS12.encryption_builder()
            .kdf_rounds(50000)
            .key_cert_algorithm(pkcs12.PBES.PBESv1SHA1And3KeyTripleDESCBC)
            .hmac_hash(hashes.SHA1())
            .build(password.encode("utf-8"))
        )
        return pkcs12.serialize_key_and_certificates(
            self.common_name.encode("utf-8") or None,
            self.key,
            self.certificate,
            list(self.chain) or None,
            encryption,
        )


class CredentialArchive:
    """The identities found in a PKCS#12 archive."""

    def __init__(self, identities: Sequence[Identity]):
        self.identities = list(identities)

    @classmethod
    def load(cls, data: bytes, password: Optional[str]) -> "CredentialArchive":
        try:
            key, cert, chain = pkcs12.load_key_and_certificates(
                data, password.encode("utf-8") if password else None
            )
        except ValueError as e:
            raise SigningError(f"Could not read PKCS#12 archive: {e}") from e
        if key is None or cert is None:
            return cls([])
        return cls([Identity(key, cert, tuple(chain))])

    @classmethod
    def from_file(cls, path: StrPath, password: Optional[str]) -> "CredentialArchive":
        return cls.load(Path(path).read_bytes(), password)

    def choose_identity(self, certificates: Sequence[x509.Certificate]) -> Optional[Identity]:
        """Return the first identity whose certificate is among certificates."""
        candidates = {c.public_bytes(serialization.Encoding.DER) for c in certificates}
        for identity in self.identities:
            if identity.certificate.public_bytes(serialization.Encoding.DER) in candidates:
                return identity
        return None


class Mobileprovision:
    """A parsed .mobileprovision file."""

    def __init__(self, data: bytes):
        self.data = data
        self.plist = _extract_plist(data)
        self.uuid: str = self.plist.get("UUID") or ""
        if not self.uuid:
            raise SigningError("Provisioning profile has no UUID")
        self.name: str = self.plist.get("Name", "")

    @classmethod
    def from_file(cls, path: StrPath) -> "Mobileprovision":
        return cls(Path(path).read_bytes())

    @property
    def certificates(self) -> List[x509.Certificate]:
        return self.read_certificates()

    def read_certificates(self, listener: Optional[TextIO] = None) -> List[x509.Certificate]:
        """Parse the developer certificates; unreadable entries are reported and skipped."""
        listener = listener or sys.stdout
        certs = []
        for der in self.plist.get("DeveloperCertificates", []):
            try:
                certs.append(x509.load_der_x509_certificate(bytes(der)))
            except ValueError:
                print(f"Warning: skipping unreadable certificate in profile {self.uuid}", file=listener)
        return certs


def _extract_plist(data: bytes):
    # The CMS envelope stores the XML plist unencrypted; slice it out of the DER
    start = data.find(b"<?xml")
    end = data.find(b"</plist>", start)
    if start < 0 or end < 0:
        raise SigningError("Provisioning profile does not contain a property list")
    try:
        plist = plistlib.loads(data[start:end + len(b"</plist>")])
    except (ValueError, ExpatError) as e:
        raise SigningError(f"Malformed provisioning profile: {e}") from e
    if not isinstance(plist, dict):
        raise SigningError("Provisioning profile property list is not a dictionary")
    return plist
