"""Wiring helpers -- build a ready-to-use manager from settings.

Usage::

    settings = load_settings(Path("credentials.yaml"))
    configure_logging(settings.logging.level)
    manager = create_manager(settings)
    ...
    await manager.join()
"""

from __future__ import annotations

import asyncio
import logging

from credentials_manager.config import Settings
from credentials_manager.events import EventBus
from credentials_manager.manager import CredentialsManager
from credentials_manager.secrets import create_secret_store

logger = logging.getLogger("credentials_manager")


def configure_logging(level: str = "INFO") -> None:
    """Apply the standard log format at *level*."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def create_manager(
    settings: Settings,
    event_bus: EventBus | None = None,
    loop: asyncio.AbstractEventLoop | None = None,
) -> CredentialsManager:
    """Create the secret store and manager, then register configured services.

    Registering services dispatches Read jobs, so this must run on the event
    loop or be given one.
    """
    store = create_secret_store(settings.store)
    logger.info("Using %s secret store", type(store).__name__)

    manager = CredentialsManager(store, event_bus=event_bus, loop=loop)
    for service, accounts in settings.services.items():
        manager.add_service(service, accounts)
    return manager
