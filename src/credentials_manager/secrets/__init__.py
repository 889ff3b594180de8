"""Secret-store backends and the factory that picks one for this platform."""

from __future__ import annotations

import logging
import pathlib
import sys

from credentials_manager.config import StoreConfig
from credentials_manager.errors import SecretStoreConfigError
from credentials_manager.secrets.encrypted_file import EncryptedFileStore
from credentials_manager.secrets.keychain import KeychainStore
from credentials_manager.secrets.memory import MemoryStore
from credentials_manager.secrets.store import SecretStore

logger = logging.getLogger(__name__)

__all__ = [
    "EncryptedFileStore",
    "KeychainStore",
    "MemoryStore",
    "SecretStore",
    "create_secret_store",
]


def _encrypted_file_store(config: StoreConfig) -> EncryptedFileStore:
    if not config.master_password:
        raise SecretStoreConfigError(
            "store.master_password is required for the encrypted_file backend"
        )
    return EncryptedFileStore(
        file_path=pathlib.Path(config.file_path),
        master_password=config.master_password,
    )


def create_secret_store(config: StoreConfig, platform: str | None = None) -> SecretStore:
    """Build the secret store described by *config*.

    ``auto`` selects the macOS Keychain on ``darwin``. Elsewhere it uses the
    encrypted file store, but only when ``insecure_fallback`` is enabled.
    """
    platform = platform or sys.platform
    backend = config.backend

    if backend == "memory":
        return MemoryStore()
    if backend == "encrypted_file":
        return _encrypted_file_store(config)

    if platform == "darwin":
        return KeychainStore()

    if not config.insecure_fallback:
        raise SecretStoreConfigError(
            f"No native keychain on platform {platform!r} and insecure_fallback is disabled"
        )
    logger.warning(
        "No native keychain on platform %s, falling back to encrypted file %s",
        platform,
        config.file_path,
    )
    return _encrypted_file_store(config)
