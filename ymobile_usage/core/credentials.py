"""
Encrypted credential storage.

Login secrets are encrypted with Fernet before they reach the key-value
store; the key lives in a separate file readable only by the owner.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from ..log import get_logger, mask_secret
from ..storage.models import Credentials
from ..storage.repository import KeyValueStore
from .errors import CredentialError

CREDENTIALS_KEY = "ymobile_credentials"


def load_or_create_key(key_path: str) -> bytes:
    """Read the Fernet key at key_path, generating it on first use.

    A new key file is created with mode 0600.

    Args:
        key_path: Path of the key file

    Returns:
        URL-safe base64 Fernet key
    """
    path = Path(key_path)
    if path.exists():
        return path.read_bytes().strip()

    path.parent.mkdir(parents=True, exist_ok=True)
    key = Fernet.generate_key()
    fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, 'wb') as f:
        f.write(key)
    return key


class CredentialStore:
    """Encrypted-at-rest storage of the portal identifier and password."""

    def __init__(self, store: KeyValueStore, key: bytes, logger: Optional[logging.Logger] = None):
        """Initialize the credential store.

        Args:
            store: Backing key-value store
            key: Fernet key used to encrypt the stored record
            logger: Optional logger; defaults to the module logger
        """
        self.store = store
        self._fernet = Fernet(key)
        self.logger = logger or get_logger(__name__)

    async def save(self, credentials: Credentials) -> None:
        """Encrypt and persist credentials, replacing any stored ones."""
        payload = json.dumps({
            "identifier": credentials.identifier,
            "secret": credentials.secret,
        }).encode('utf-8')
        await self.store.set(CREDENTIALS_KEY, self._fernet.encrypt(payload).decode('ascii'))
        self.logger.info(f"Saved credentials for {mask_secret(credentials.identifier)}")

    async def load(self) -> Optional[Credentials]:
        """Return stored credentials, or None when none are saved.

        Raises:
            CredentialError: If the stored record cannot be decrypted or decoded
        """
        token = await self.store.get(CREDENTIALS_KEY)
        if not token:
            return None

        try:
            payload = self._fernet.decrypt(token.encode('ascii'))
            data = json.loads(payload.decode('utf-8'))
            return Credentials(identifier=data["identifier"], secret=data["secret"])
        except InvalidToken:
            raise CredentialError("Stored credentials cannot be decrypted with the current key")
        except (ValueError, KeyError, TypeError) as e:
            raise CredentialError(f"Stored credentials are corrupt: {e}")

    async def delete(self) -> None:
        await self.store.remove(CREDENTIALS_KEY)
        self.logger.info("Deleted stored credentials")

    async def has_credentials(self) -> bool:
        return bool(await self.store.get(CREDENTIALS_KEY))
