"""Encryption of stored tenant credentials.

AES-256-GCM with a key derived from the configured secret via scrypt.
Ciphertexts are stored as ``iv:authTag:ciphertext`` (hex parts).
"""

from __future__ import annotations

import re
import secrets

import structlog
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

logger = structlog.get_logger()

IV_SIZE = 16
TAG_SIZE = 16
KEY_SALT = b"salt"
_SEALED_RE = re.compile(
    rf"[0-9a-f]{{{2 * IV_SIZE}}}:[0-9a-f]{{{2 * TAG_SIZE}}}:[0-9a-f]*", re.IGNORECASE
)


def derive_key(secret: str) -> bytes:
    """Derive a 32-byte AES key from ``secret`` (scrypt N=16384, r=8, p=1)."""
    kdf = Scrypt(salt=KEY_SALT, length=32, n=2**14, r=8, p=1)
    return kdf.derive(secret.encode("utf-8"))


class CredentialCipher:
    """Encrypt/decrypt credential strings for storage.

    Decryption soft-fails: a value that is not in the three-part format, or
    that fails authentication, is returned unchanged. Records written before
    encryption was enabled (or loaded from plaintext config files) keep
    working.
    """

    def __init__(self, secret: str) -> None:
        self._aesgcm = AESGCM(derive_key(secret))

    def encrypt(self, plaintext: str) -> str:
        iv = secrets.token_bytes(IV_SIZE)
        sealed = self._aesgcm.encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
        return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"

    @staticmethod
    def is_encrypted(value: str) -> bool:
        """Whether ``value`` has the stored ``iv:tag:ciphertext`` shape."""
        return _SEALED_RE.fullmatch(value) is not None

    def decrypt(self, value: str) -> str:
        parts = value.split(":")
        if len(parts) != 3:
            return value

        try:
            iv, tag, ciphertext = (bytes.fromhex(p) for p in parts)
            plaintext = self._aesgcm.decrypt(iv, ciphertext + tag, None)
            return plaintext.decode("utf-8")
        except (ValueError, InvalidTag):
            logger.warning("credential_decrypt_failed_assuming_plaintext")
            return value
