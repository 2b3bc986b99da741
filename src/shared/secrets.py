"""Symmetric encryption for stored API secrets."""

import base64
import hashlib
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from domain.exceptions import ConfigurationError
from shared.logging import get_logger

logger = get_logger(__name__)

_DEV_PASSPHRASE = "asset-migrator-dev-only"


def _derive_key(passphrase: str) -> bytes:
    """Fernet key from an arbitrary passphrase."""
    digest = hashlib.sha256(passphrase.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


class SecretBox:
    """Encrypts secrets before they are written to the state directory."""

    def __init__(self, key: Optional[str] = None):
        """
        Args:
            key: A Fernet key or any passphrase. Without one a fixed
                development key is used and a warning is logged.
        """
        if not key:
            logger.warning(
                "MIGRATION_ENCRYPTION_KEY not set - using development key (not secure for production)"
            )
            key = _DEV_PASSPHRASE

        try:
            self._fernet = Fernet(key.encode("utf-8"))
        except (ValueError, TypeError):
            self._fernet = Fernet(_derive_key(key))

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode("utf-8")

    def encrypt(self, secret: str) -> str:
        if not secret:
            raise ValueError("Secret value must not be empty")
        return self._fernet.encrypt(secret.encode("utf-8")).decode("utf-8")

    def decrypt(self, token: str) -> str:
        try:
            value = self._fernet.decrypt(token.encode("utf-8"))
        except InvalidToken as e:
            raise ConfigurationError(
                "Unable to decrypt stored secret (invalid token or encryption key mismatch)"
            ) from e
        return value.decode("utf-8")
