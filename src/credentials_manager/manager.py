"""Credentials manager -- the in-memory cache in front of the secret store.

Reads are served synchronously from the cache. Everything that touches the
secret store (the initial load of a service, writes and deletes) runs as an
asynchronous ``SecretStoreJob``. Writes and deletes update the cache
optimistically before their job runs; a failed job is logged and the cache
is not rolled back.

Loading a service::

    manager = CredentialsManager(store)
    manager.on_service_ready(lambda service: ...)
    manager.add_service("spotify", ["username", "token"])

``add_service`` dispatches one Read per account key and publishes
``EventType.SERVICE_READY`` once every one of them has completed, whether it
succeeded or not.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import threading
from collections.abc import Iterable, Mapping
from typing import Any, Callable

from credentials_manager.codec import Codec, JsonCodec
from credentials_manager.errors import JobError
from credentials_manager.events import EventBus, EventType, Subscription
from credentials_manager.jobs import JobKind, SecretStoreJob
from credentials_manager.keys import CredentialsKey
from credentials_manager.secrets.store import SecretStore
from credentials_manager.values import (
    EMPTY,
    CredentialValue,
    Scalar,
    Structured,
    Text,
    as_value,
    is_empty,
)

logger = logging.getLogger(__name__)


def _restore(mapping: dict[Any, Any], key: Any, previous: Any) -> None:
    """Put back *previous* under *key*, or remove *key* if there was nothing."""
    if previous is None:
        mapping.pop(key, None)
    else:
        mapping[key] = previous


class ServiceState(enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"


class CredentialsManager:
    """Owns the credential cache and the per-service load state.

    Parameters
    ----------
    store:
        Backend the jobs run against.
    codec:
        Serializer for structured credentials. Defaults to ``JsonCodec``.
    event_bus:
        Bus that receives ``SERVICE_READY`` events. A private bus is created
        when omitted.
    loop:
        Event loop the jobs run on. Defaults to the loop running when a job
        is dispatched; pass one explicitly to call the manager from other
        threads.
    """

    def __init__(
        self,
        store: SecretStore,
        codec: Codec | None = None,
        event_bus: EventBus | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._store = store
        self._codec = codec or JsonCodec()
        self._events = event_bus or EventBus()
        self._loop = loop
        self._credentials: dict[CredentialsKey, CredentialValue] = {}
        self._services: dict[str, list[str]] = {}
        self._read_jobs: dict[str, set[SecretStoreJob]] = {}
        self._jobs: set[SecretStoreJob] = set()
        # Guards the cache, the registry and the job sets
        self._lock = threading.Lock()

    @property
    def event_bus(self) -> EventBus:
        return self._events

    # -- Service registry --------------------------------------------

    def add_service(self, service: str, account_keys: Iterable[str]) -> None:
        """Register *service* and load the credentials of its account keys.

        Replaces any account list registered earlier for *service* and
        restarts its load cycle. With no account keys the service is ready
        before this call returns.
        """
        accounts = list(account_keys)
        loop = self._resolve_loop() if accounts else None
        with self._lock:
            previous_accounts = self._services.get(service)
            previous_pending = self._read_jobs.get(service)
            self._services[service] = accounts
            logger.debug("Loading %d key(s) for service %s", len(accounts), service)
            pending: set[SecretStoreJob] = set()
            self._read_jobs[service] = pending
            try:
                for account in accounts:
                    job = SecretStoreJob(JobKind.READ, self._store, CredentialsKey(service, account))
                    pending.add(job)
                    self._dispatch(job, loop)
            except Exception:
                # Reads already started complete as part of a superseded load
                _restore(self._services, service, previous_accounts)
                _restore(self._read_jobs, service, previous_pending)
                raise
            if not pending:
                del self._read_jobs[service]

        if not accounts:
            # Nothing to read, so we're done already
            self._service_ready(service)

    def services(self) -> list[str]:
        """Names of every registered service."""
        with self._lock:
            return list(self._services)

    def keys(self, service: str) -> list[str]:
        """Account keys of *service* that currently hold a cached credential."""
        with self._lock:
            return [key.account for key in self._credentials if key.service == service]

    def state(self, service: str) -> ServiceState:
        with self._lock:
            if service in self._read_jobs:
                return ServiceState.LOADING
            if service in self._services:
                return ServiceState.READY
            return ServiceState.IDLE

    def on_service_ready(self, callback: Callable[[str], Any]) -> Subscription:
        """Call ``callback(service)`` each time a service finishes loading."""
        return self._events.subscribe(
            [EventType.SERVICE_READY],
            lambda event: callback(event["payload"]["service"]),
        )

    # -- Reads --------------------------------------------------------

    def credentials(
        self, key: CredentialsKey | str, account: str | None = None
    ) -> CredentialValue:
        """Return the cached credential, or ``EMPTY`` if there is none.

        Accepts either a ``CredentialsKey`` or a service name and account.
        Never touches the secret store.
        """
        if isinstance(key, CredentialsKey):
            if account is not None:
                raise TypeError("account must be omitted when passing a CredentialsKey")
        else:
            if account is None:
                raise TypeError("account is required when passing a service name")
            key = CredentialsKey(key, account)

        with self._lock:
            return self._credentials.get(key, EMPTY)

    # -- Writes -------------------------------------------------------

    def set_credentials(
        self,
        key: CredentialsKey,
        value: CredentialValue | str | Mapping[str, Scalar] | None,
        prefer_text: bool = False,
    ) -> None:
        """Store *value* for *key*, or delete the credential if *value* is empty.

        The cache changes before this call returns; the matching Write or
        Delete job runs afterwards and its outcome is only logged. Setting
        the value already cached, or deleting a credential that is not
        cached, dispatches nothing.

        ``Text`` values are always written verbatim and ``Structured`` values
        always go through the codec, so *prefer_text* does not change the
        payload.
        """
        value = as_value(value)
        with self._lock:
            if is_empty(value):
                if key not in self._credentials:
                    logger.debug("No credentials cached for %s, nothing to delete", key)
                    return
                loop = self._resolve_loop()
                previous = self._credentials.pop(key)
                job = SecretStoreJob(JobKind.DELETE, self._store, key)
            else:
                if self._credentials.get(key) == value:
                    logger.debug("Credentials for %s unchanged, skipping write", key)
                    return
                loop = self._resolve_loop()
                previous = self._credentials.get(key)
                self._credentials[key] = value
                job = SecretStoreJob(
                    JobKind.WRITE, self._store, key, self._encode(key, value)
                )
            try:
                self._dispatch(job, loop)
            except Exception:
                _restore(self._credentials, key, previous)
                raise

    def set_text(self, service: str, account: str, text: str) -> None:
        """Store a text credential, written verbatim to the secret store."""
        self.set_credentials(CredentialsKey(service, account), Text(text), prefer_text=True)

    def set_structured(
        self, service: str, account: str, fields: Mapping[str, Scalar]
    ) -> None:
        """Store a structured credential, serialized through the codec."""
        self.set_credentials(CredentialsKey(service, account), Structured(dict(fields)))

    async def join(self) -> None:
        """Wait until every dispatched job has completed."""
        while True:
            with self._lock:
                jobs = list(self._jobs)
            if not jobs:
                return
            await asyncio.gather(*(job.wait() for job in jobs))

    # -- Internals ----------------------------------------------------

    def _encode(self, key: CredentialsKey, value: CredentialValue) -> str:
        if isinstance(value, Text):
            return value.text
        if isinstance(value, Structured):
            data, ok = self._codec.encode(value.fields)
            if not ok:
                logger.warning("Cannot serialize credentials for writing %s", key)
                return ""
            logger.debug("About to write credentials for %s", key)
            return data.decode("utf-8")
        raise TypeError(f"Cannot encode {type(value).__name__} credentials")

    def _resolve_loop(self) -> asyncio.AbstractEventLoop:
        """The loop jobs run on. Raises RuntimeError outside a running loop."""
        if self._loop is not None:
            if self._loop.is_closed():
                raise RuntimeError("The event loop for secret-store jobs is closed")
            return self._loop
        return asyncio.get_running_loop()

    def _dispatch(self, job: SecretStoreJob, loop: asyncio.AbstractEventLoop | None) -> None:
        """Take ownership of *job* and start it. Caller holds the lock."""
        job.on_finished(self._on_job_finished)
        self._jobs.add(job)
        logger.debug("Launching %s job for %s", job.kind.value, job.key)
        try:
            job.start(loop)
        except Exception:
            self._jobs.discard(job)
            raise

    def _on_job_finished(self, job: SecretStoreJob) -> None:
        ready = False
        with self._lock:
            self._jobs.discard(job)

            if job.kind is JobKind.READ:
                if job.error is JobError.NO_ERROR:
                    logger.debug("Read job for %s finished without errors", job.key)
                    self._store_read_result(job)
                elif job.error is JobError.ENTRY_NOT_FOUND:
                    logger.debug("No stored credentials for %s", job.key)
                else:
                    logger.warning(
                        "Read job for %s finished with error %s: %s",
                        job.key, job.error.value, job.error_string,
                    )

                pending = self._read_jobs.get(job.service)
                if pending is None or job not in pending:
                    logger.debug("Read job for %s belongs to a superseded load", job.key)
                else:
                    pending.discard(job)
                    if not pending:
                        del self._read_jobs[job.service]
                        ready = True
            elif job.error is JobError.NO_ERROR:
                logger.info("%s job for %s finished without error", job.kind.value.capitalize(), job.key)
            else:
                logger.warning(
                    "%s job for %s finished with error %s: %s",
                    job.kind.value.capitalize(), job.key, job.error.value, job.error_string,
                )

        if ready:
            self._service_ready(job.service)

    def _store_read_result(self, job: SecretStoreJob) -> None:
        """Cache the payload of a successful Read. Caller holds the lock."""
        payload = job.text_data
        if not payload:
            logger.debug("Stored credentials for %s are empty, leaving them uncached", job.key)
            return

        fields, ok = self._codec.decode(payload.encode("utf-8"))
        value: CredentialValue
        if ok and fields:
            value = Structured(fields)
        else:
            value = Text(payload)
        self._credentials[job.key] = value

    def _service_ready(self, service: str) -> None:
        logger.info("Credentials for service %s are ready", service)
        self._events.publish(EventType.SERVICE_READY, {"service": service})
