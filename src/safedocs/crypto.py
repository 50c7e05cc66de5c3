"""CryptoGateway: password hashing and whole-document encryption.

The passphrase is the only key material.  It is used twice:

* :func:`hash_password` gives a deterministic SHA-256 digest stored next to the
  ciphertext so a mistyped passphrase is rejected without decrypting.
* :meth:`CryptoGateway.encrypt` derives a Fernet key from the passphrase with
  PBKDF2-HMAC-SHA256 and a random salt, then encrypts the canonical JSON of the
  document.

Ciphertext layout::

    v1$<urlsafe-b64 salt>$<fernet token>
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
import logging
import os

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives.hashes import SHA256
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from safedocs.tree import DocumentTree

logger = logging.getLogger("safedocs.crypto")

FORMAT_VERSION = "v1"
DEFAULT_ITERATIONS = 390_000
SALT_BYTES = 16


def hash_password(passphrase: str) -> str:
    """Return the hex SHA-256 digest of *passphrase*."""
    return hashlib.sha256(passphrase.encode("utf-8")).hexdigest()


def canonical_json(tree: DocumentTree) -> str:
    return json.dumps(tree.to_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class CryptoGateway:
    """Symmetric encryption of a :class:`DocumentTree` under a passphrase."""

    def __init__(self, *, iterations: int = DEFAULT_ITERATIONS) -> None:
        self.iterations = iterations

    def _fernet(self, passphrase: str, salt: bytes) -> Fernet:
        kdf = PBKDF2HMAC(algorithm=SHA256(), length=32, salt=salt, iterations=self.iterations)
        key = kdf.derive(passphrase.encode("utf-8"))
        return Fernet(base64.urlsafe_b64encode(key))

    def encrypt(self, tree: DocumentTree, passphrase: str) -> str:
        salt = os.urandom(SALT_BYTES)
        token = self._fernet(passphrase, salt).encrypt(canonical_json(tree).encode("utf-8"))
        return "$".join([FORMAT_VERSION, base64.urlsafe_b64encode(salt).decode("ascii"), token.decode("ascii")])

    def decrypt(self, ciphertext: str, passphrase: str) -> DocumentTree | None:
        """Return the decrypted tree, or ``None`` if anything goes wrong.

        Wrong key, tampered or truncated data, and plaintext that is not a
        document all look the same to the caller.
        """
        try:
            version, salt_b64, token = ciphertext.split("$", 2)
            if version != FORMAT_VERSION:
                raise ValueError(f"unsupported ciphertext version {version!r}")
            salt = base64.urlsafe_b64decode(salt_b64.encode("ascii"))
            plaintext = self._fernet(passphrase, salt).decrypt(token.encode("ascii"))
            data = json.loads(plaintext.decode("utf-8"))
            if not isinstance(data, dict):
                raise ValueError("decrypted payload is not an object")
            return DocumentTree.from_dict(data)
        except (InvalidToken, binascii.Error, ValueError, TypeError, KeyError, AttributeError, OverflowError) as exc:
            logger.debug("decryption failed: %s", type(exc).__name__)
            return None
