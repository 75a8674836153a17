"""Symmetric encryption for token material kept in the session store."""

from __future__ import annotations

import base64
import hashlib
from datetime import datetime
from typing import Tuple

from cryptography.fernet import Fernet, InvalidToken

from member_oauth.models.oauth import TokenPair


class TokenCipherService:
    """Encrypt and decrypt tokens using a Fernet key derived from a secret."""

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as exc:
            raise ValueError(
                "Failed to decrypt token; invalid ciphertext provided."
            ) from exc
        return plaintext.decode("utf-8")

    def seal_pair(self, token_pair: TokenPair) -> Tuple[str, str]:
        """Return the encrypted (access_token, refresh_token) of a pair."""
        return (
            self.encrypt(token_pair.access_token),
            self.encrypt(token_pair.refresh_token),
        )

    def open_pair(
        self, access_ciphertext: str, refresh_ciphertext: str, expires_at: datetime
    ) -> TokenPair:
        return TokenPair(
            access_token=self.decrypt(access_ciphertext),
            refresh_token=self.decrypt(refresh_ciphertext),
            expires_at=expires_at,
        )


__all__ = ["TokenCipherService"]
