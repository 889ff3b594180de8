"""Integration tests for building a manager from settings."""

from __future__ import annotations

import logging
import pathlib
from unittest.mock import patch

import pytest

from credentials_manager.app import configure_logging, create_manager
from credentials_manager.config import Settings, StoreConfig
from credentials_manager.errors import SecretStoreConfigError
from credentials_manager.events import EventBus, EventType
from credentials_manager.keys import CredentialsKey
from credentials_manager.secrets.memory import MemoryStore
from credentials_manager.values import EMPTY, Structured, Text


def _file_settings(tmp_path: pathlib.Path, **services: list[str]) -> Settings:
    return Settings(
        store=StoreConfig(
            backend="encrypted_file",
            file_path=str(tmp_path / "credentials.enc"),
            master_password="test-password",
        ),
        services=services,
    )


class TestCreateManager:
    @pytest.mark.asyncio
    async def test_registers_configured_services(self) -> None:
        bus = EventBus()
        ready: list[str] = []
        bus.subscribe([EventType.SERVICE_READY], lambda e: ready.append(e["payload"]["service"]))

        settings = Settings(
            store=StoreConfig(backend="memory"),
            services={"spotify": ["user", "token"], "lastfm": []},
        )
        manager = create_manager(settings, event_bus=bus)
        await manager.join()

        assert sorted(manager.services()) == ["lastfm", "spotify"]
        assert sorted(ready) == ["lastfm", "spotify"]

    def test_bad_store_config_raises(self) -> None:
        settings = Settings(store=StoreConfig(backend="encrypted_file"))
        with pytest.raises(SecretStoreConfigError):
            create_manager(settings)

    @pytest.mark.asyncio
    async def test_credentials_survive_restart(self, tmp_path: pathlib.Path) -> None:
        """Values written by one manager are loaded by the next one."""
        first = create_manager(_file_settings(tmp_path))
        first.set_text("spotify", "token", "abc123")
        first.set_structured("spotify", "user", {"name": "alice", "premium": True})
        await first.join()

        second = create_manager(_file_settings(tmp_path, spotify=["token", "user", "missing"]))
        await second.join()

        assert second.credentials("spotify", "token") == Text("abc123")
        assert second.credentials("spotify", "user") == Structured({"name": "alice", "premium": True})
        assert second.credentials("spotify", "missing") == EMPTY

    @pytest.mark.asyncio
    async def test_deleted_credentials_stay_deleted(self, tmp_path: pathlib.Path) -> None:
        first = create_manager(_file_settings(tmp_path))
        first.set_text("spotify", "token", "abc123")
        await first.join()
        first.set_credentials(CredentialsKey("spotify", "token"), None)
        await first.join()

        second = create_manager(_file_settings(tmp_path, spotify=["token"]))
        await second.join()
        assert second.credentials("spotify", "token") == EMPTY

    def test_uses_configured_store(self) -> None:
        with patch("credentials_manager.app.create_secret_store", return_value=MemoryStore()) as factory:
            create_manager(Settings())
        factory.assert_called_once_with(Settings().store)


class TestConfigureLogging:
    def test_applies_level(self) -> None:
        with patch("logging.basicConfig") as basic_config:
            configure_logging("debug")
        assert basic_config.call_args.kwargs["level"] == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self) -> None:
        with patch("logging.basicConfig") as basic_config:
            configure_logging("chatty")
        assert basic_config.call_args.kwargs["level"] == logging.INFO
