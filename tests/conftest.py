"""Shared test fixtures for credentials manager tests."""

from __future__ import annotations

import asyncio
import pathlib

import pytest

from credentials_manager.errors import SecretStoreError
from credentials_manager.manager import CredentialsManager
from credentials_manager.secrets.store import SecretStore

REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]


class GatedStore(SecretStore):
    """Dict-backed store that records every call.

    With ``gated=True`` each operation blocks until the test calls
    ``release(service, account)``, so tests choose the completion order.
    Entries in ``failures`` make operations on that key raise.
    """

    def __init__(self, data: dict[tuple[str, str], str] | None = None, gated: bool = False) -> None:
        self.data: dict[tuple[str, str], str] = dict(data or {})
        self.gated = gated
        self.calls: list[tuple[str, str, str]] = []
        self.written: list[tuple[str, str, str]] = []
        self.failures: dict[tuple[str, str], SecretStoreError] = {}
        self._gates: dict[tuple[str, str], asyncio.Event] = {}

    def _gate(self, service: str, account: str) -> asyncio.Event:
        return self._gates.setdefault((service, account), asyncio.Event())

    def release(self, service: str, account: str) -> None:
        self._gate(service, account).set()

    def ops(self, op: str) -> list[tuple[str, str]]:
        return [(service, account) for name, service, account in self.calls if name == op]

    async def _enter(self, op: str, service: str, account: str) -> None:
        self.calls.append((op, service, account))
        if self.gated:
            await self._gate(service, account).wait()
        failure = self.failures.get((service, account))
        if failure is not None:
            raise failure

    async def get(self, service: str, account: str) -> str | None:
        await self._enter("get", service, account)
        return self.data.get((service, account))

    async def set(self, service: str, account: str, value: str) -> None:
        await self._enter("set", service, account)
        self.written.append((service, account, value))
        self.data[(service, account)] = value

    async def delete(self, service: str, account: str) -> None:
        await self._enter("delete", service, account)
        self.data.pop((service, account), None)

    async def list_accounts(self, service: str) -> list[str]:
        return [account for svc, account in self.data if svc == service]


async def _spin(iterations: int = 20) -> None:
    for _ in range(iterations):
        await asyncio.sleep(0)


@pytest.fixture
def spin():
    """Returns a coroutine function that lets scheduled tasks run a few loop iterations."""
    return _spin


@pytest.fixture
def repo_root() -> pathlib.Path:
    return REPO_ROOT


@pytest.fixture
def store() -> GatedStore:
    return GatedStore()


@pytest.fixture
def manager(store: GatedStore) -> CredentialsManager:
    return CredentialsManager(store)


@pytest.fixture
def ready_services(manager: CredentialsManager) -> list[str]:
    """Collects every SERVICE_READY the manager publishes, in order."""
    ready: list[str] = []
    manager.on_service_ready(ready.append)
    return ready


@pytest.fixture
def gated_store() -> GatedStore:
    return GatedStore(gated=True)


@pytest.fixture
def gated_manager(gated_store: GatedStore) -> CredentialsManager:
    return CredentialsManager(gated_store)
