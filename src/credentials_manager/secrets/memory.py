"""In-process secret storage, for tests and ephemeral sessions."""

from __future__ import annotations

from credentials_manager.secrets.store import SecretStore


class MemoryStore(SecretStore):
    """Keeps secrets in a dict. Nothing survives the process."""

    def __init__(self, initial: dict[tuple[str, str], str] | None = None) -> None:
        self._data: dict[tuple[str, str], str] = dict(initial or {})

    async def get(self, service: str, account: str) -> str | None:
        return self._data.get((service, account))

    async def set(self, service: str, account: str, value: str) -> None:
        self._data[(service, account)] = value

    async def delete(self, service: str, account: str) -> None:
        self._data.pop((service, account), None)

    async def list_accounts(self, service: str) -> list[str]:
        return [account for svc, account in self._data if svc == service]
