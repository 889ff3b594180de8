"""Abstract interface for secret storage."""

from __future__ import annotations

from abc import ABC, abstractmethod


class SecretStore(ABC):
    """Abstract secret store. Implementations provide platform-specific storage.

    Secrets are addressed by ``(service, account)``. All methods are async to
    support both I/O-bound backends (file) and subprocess-based backends
    (macOS Keychain CLI). Backend failures raise ``SecretStoreError``.
    """

    @abstractmethod
    async def get(self, service: str, account: str) -> str | None:
        """Retrieve a secret. Returns None if not found."""

    @abstractmethod
    async def set(self, service: str, account: str, value: str) -> None:
        """Store or update a secret."""

    @abstractmethod
    async def delete(self, service: str, account: str) -> None:
        """Delete a secret. Does not raise if the secret does not exist."""

    @abstractmethod
    async def list_accounts(self, service: str) -> list[str]:
        """Return the accounts holding a secret for *service*."""
