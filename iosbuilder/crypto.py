#!/usr/bin/env python3
"""
Decryption of secrets handed to the build through the environment.

Secrets are AES-CBC encrypted with PKCS#7 padding and base64 encoded by the
server that schedules builds. The key is used directly as bytes and the IV is
its first 16 bytes.
"""

import base64
import binascii

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .utils import ConfigError


def _aes_key(key_string: str) -> bytes:
    """Fit the key string to the nearest AES key size (16, 24 or 32 bytes)."""
    key = key_string.encode("utf-8")
    if len(key) < 16:
        return key.ljust(16, b"\0")
    for size in (32, 24, 16):
        if len(key) >= size:
            return key[:size]


def decrypt_secret(encrypted: str, key_string: str) -> str:
    """Decrypt a base64 AES-CBC/PKCS#7 value with key_string."""
    key = _aes_key(key_string)
    try:
        ciphertext = base64.b64decode(encrypted)
        decryptor = Cipher(algorithms.AES(key), modes.CBC(key[:16])).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        return (unpadder.update(padded) + unpadder.finalize()).decode("utf-8")
    except (binascii.Error, ValueError) as e:
        raise ConfigError(f"Could not decrypt secret, check the key and the encrypted value: {e}") from e
