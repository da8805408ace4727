"""Pytest configuration and shared fixtures."""

import datetime
import io
import plistlib
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional, Union

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

from iosbuilder import IOSBuilder, Identity, Mobileprovision, ProvisioningRegistry


class Call(NamedTuple):
    cmd: List[str]
    cwd: Optional[Path]
    env: Optional[Dict[str, str]]


class FakeLauncher:
    """Records launched commands instead of running them.

    `results` maps a command word (e.g. "import", "PackageApplication") to the
    exit status to return, or to an exception to raise.
    """

    def __init__(self):
        self.calls: List[Call] = []
        self.results: Dict[str, Union[int, Exception]] = {}
        self.identity_file_existed: List[bool] = []

    def __call__(self, cmd, cwd=None, env=None, listener=None) -> int:
        cmd = list(cmd)
        self.calls.append(Call(cmd, Path(cwd) if cwd is not None else None, env))
        if len(cmd) > 2 and cmd[1] == "import":
            self.identity_file_existed.append(Path(cmd[2]).exists())
        for word, result in self.results.items():
            if word in cmd:
                if isinstance(result, Exception):
                    raise result
                return result
        return 0

    def security_calls(self) -> List[str]:
        return [c.cmd[1] for c in self.calls if c.cmd[0] == "security"]

    def calls_to(self, tool: str) -> List[Call]:
        return [c for c in self.calls if c.cmd[0] == tool]


def make_certificate(common_name: str):
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .sign(key, hashes.SHA256())
    )
    return key, cert


def make_p12(key, cert, password: bytes) -> bytes:
    return pkcs12.serialize_key_and_certificates(
        b"test", key, cert, None, serialization.BestAvailableEncryption(password)
    )


def make_profile_bytes(uuid: str = "ABC-123", certificates=(), **extra) -> bytes:
    plist = {
        "UUID": uuid,
        "Name": "Test Profile",
        "DeveloperCertificates": [c.public_bytes(serialization.Encoding.DER) for c in certificates],
        **extra,
    }
    # the real file wraps the plist in a DER encoded CMS envelope
    return b"\x30\x80\x06\x09junk" + plistlib.dumps(plist) + b"\x00\x00signature"


@pytest.fixture
def launcher():
    return FakeLauncher()


@pytest.fixture
def workspace(tmp_path):
    ws = tmp_path / "workspace"
    ws.mkdir()
    return ws


@pytest.fixture
def home(tmp_path):
    h = tmp_path / "home"
    h.mkdir()
    return h


@pytest.fixture
def registry(home):
    return ProvisioningRegistry(home)


@pytest.fixture
def log():
    return io.StringIO()


@pytest.fixture
def builder(workspace, launcher, registry, log):
    return IOSBuilder(
        "pod", "security", "xcodebuild", "xcrun",
        workspace, {"HOME": "/nonexistent", "CONFIG": "Release"}, "build",
        listener=log, launcher=launcher, registry=registry,
    )


@pytest.fixture
def identity():
    key, cert = make_certificate("Dev Cert")
    return Identity(key, cert)


@pytest.fixture
def mobileprovision(identity):
    return Mobileprovision(make_profile_bytes("ABC-123", [identity.certificate]))
