"""Identity key used to index the credential cache."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CredentialsKey:
    """A ``(service, account)`` pair.

    Equality and hashing are structural over both fields, so two keys built
    from the same strings address the same cache entry.
    """

    service: str
    account: str

    def __str__(self) -> str:
        return f"{self.service}/{self.account}"
