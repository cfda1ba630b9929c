# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
Encryption of Slack access tokens at rest.

Tokens are sealed with AES-256-GCM under a key derived from the
configured ENCRYPTION_KEY. The stored form is ``v1:`` followed by the
URL-safe base64 of nonce + ciphertext.
"""

import base64
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM


_PREFIX = "v1:"
_NONCE_SIZE = 12


class TokenCipher:
    """Seals and opens access tokens stored in the connections table."""

    def __init__(self, encryption_key: str):
        """
        Args:
            encryption_key: Secret of at least 32 characters

        Raises:
            ValueError: If the key is too short
        """
        if len(encryption_key) < 32:
            raise ValueError("Encryption key must be at least 32 characters")

        digest = hashes.Hash(hashes.SHA256())
        digest.update(encryption_key.encode("utf-8"))
        self._aead = AESGCM(digest.finalize())

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(_NONCE_SIZE)
        sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        return _PREFIX + base64.urlsafe_b64encode(nonce + sealed).decode("ascii")

    def decrypt(self, stored: str) -> str:
        """
        Recover a token sealed by :meth:`encrypt`.

        Raises:
            ValueError: If the value is malformed or was sealed under another key
        """
        if not stored.startswith(_PREFIX):
            raise ValueError("Unrecognized token format")

        try:
            raw = base64.urlsafe_b64decode(stored[len(_PREFIX):].encode("ascii"))
            nonce, sealed = raw[:_NONCE_SIZE], raw[_NONCE_SIZE:]
            return self._aead.decrypt(nonce, sealed, None).decode("utf-8")
        except (InvalidTag, ValueError) as e:
            raise ValueError(f"Token decryption failed: {type(e).__name__}") from e
