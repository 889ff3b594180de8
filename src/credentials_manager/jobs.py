"""Asynchronous secret-store jobs.

A job is a single Read, Write or Delete against a ``SecretStore`` for one
``CredentialsKey``. It runs as a task on an asyncio event loop and reports
completion exactly once through its finished callback. Backend failures are
captured on the job (``error`` / ``error_string``) rather than raised.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Callable

from credentials_manager.errors import JobError, SecretStoreError
from credentials_manager.keys import CredentialsKey
from credentials_manager.secrets.store import SecretStore

logger = logging.getLogger(__name__)


class JobKind(enum.Enum):
    READ = "read"
    WRITE = "write"
    DELETE = "delete"


FinishedCallback = Callable[["SecretStoreJob"], None]


class SecretStoreJob:
    """One outstanding operation against the secret store.

    Parameters
    ----------
    kind:
        Which operation to run.
    store:
        The backend the operation runs against.
    key:
        The credential the operation addresses.
    payload:
        Text to write. Only meaningful for ``JobKind.WRITE``.
    """

    def __init__(
        self,
        kind: JobKind,
        store: SecretStore,
        key: CredentialsKey,
        payload: str = "",
    ) -> None:
        self.kind = kind
        self.key = key
        self._store = store
        self._payload = payload
        self._text_data = ""
        self.error = JobError.NO_ERROR
        self.error_string = ""
        self._callback: FinishedCallback | None = None
        self._started = False
        self._finished = False
        self._done = asyncio.Event()
        # Keeps the scheduled task referenced until the job is released
        self._task: object | None = None

    def __repr__(self) -> str:
        return f"SecretStoreJob({self.kind.value}, {self.key})"

    @property
    def service(self) -> str:
        return self.key.service

    @property
    def account(self) -> str:
        return self.key.account

    @property
    def payload(self) -> str:
        return self._payload

    @property
    def text_data(self) -> str:
        """The secret retrieved by a successful Read."""
        return self._text_data

    @property
    def finished(self) -> bool:
        return self._finished

    def on_finished(self, callback: FinishedCallback) -> None:
        """Register the completion callback. A job has exactly one."""
        if self._callback is not None:
            raise RuntimeError(f"{self!r} already has a finished callback")
        self._callback = callback

    def start(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Schedule the job on *loop* (default: the running loop).

        Safe to call from a thread other than the loop's own. A job runs once;
        starting it again raises ``RuntimeError``.
        """
        if self._started:
            raise RuntimeError(f"{self!r} was already started")
        self._started = True

        try:
            running: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        target = loop or running
        if target is None:
            raise RuntimeError("SecretStoreJob.start() needs an event loop")

        coro = self._run()
        try:
            if target is running:
                self._task = target.create_task(coro)
            else:
                self._task = asyncio.run_coroutine_threadsafe(coro, target)
        except Exception:
            # e.g. the target loop is closed
            coro.close()
            raise

    async def wait(self) -> None:
        """Wait until the job finished and its callback ran."""
        await self._done.wait()

    async def _run(self) -> None:
        try:
            await self._execute()
        except SecretStoreError as exc:
            self.error = exc.code
            self.error_string = str(exc)
        except asyncio.CancelledError:
            self.error = JobError.OTHER_ERROR
            self.error_string = "Job was cancelled before it completed"
            raise
        except Exception as exc:
            logger.exception("Secret-store %s job for %s crashed", self.kind.value, self.key)
            self.error = JobError.OTHER_ERROR
            self.error_string = f"{type(exc).__name__}: {exc}"
        finally:
            self._finished = True
            try:
                if self._callback is not None:
                    self._callback(self)
            except Exception:
                logger.exception("Finished callback failed for %r", self)
            finally:
                self._done.set()

    async def _execute(self) -> None:
        service, account = self.key.service, self.key.account
        if self.kind is JobKind.READ:
            value = await self._store.get(service, account)
            if value is None:
                self.error = JobError.ENTRY_NOT_FOUND
                self.error_string = f"No secret stored for {self.key}"
            else:
                self._text_data = value
        elif self.kind is JobKind.WRITE:
            await self._store.set(service, account, self._payload)
        elif self.kind is JobKind.DELETE:
            await self._store.delete(service, account)
