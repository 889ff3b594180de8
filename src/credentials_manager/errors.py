"""Error types shared by the secret-store backends and jobs."""

from __future__ import annotations

import enum


class JobError(enum.Enum):
    """Outcome of a secret-store job."""

    NO_ERROR = "no_error"
    ENTRY_NOT_FOUND = "entry_not_found"
    ACCESS_DENIED = "access_denied"
    OTHER_ERROR = "other_error"


class SecretStoreError(Exception):
    """A backend failed to complete an operation."""

    def __init__(self, message: str, code: JobError = JobError.OTHER_ERROR) -> None:
        super().__init__(message)
        self.code = code


class SecretStoreConfigError(ValueError):
    """The configured secret-store backend cannot be created."""
