"""macOS Keychain backend for secret storage.

Wraps the macOS ``security`` CLI tool to store secrets as generic passwords
in the user's login keychain. The keychain service attribute carries the
credential service and the account attribute carries the account key.
"""

from __future__ import annotations

import asyncio
import re

from credentials_manager.errors import JobError, SecretStoreError
from credentials_manager.secrets.store import SecretStore

# Exit code when a duplicate item already exists in Keychain
_ERR_DUPLICATE_ITEM = 45
# Exit code when an item is not found in Keychain
_ERR_ITEM_NOT_FOUND = 44
# Exit codes when the keychain refuses access (auth failed, user canceled)
_ERR_ACCESS = frozenset({51, 128})

# Printable passwords come quoted; anything else (non-ASCII, binary) as 0x<hex>
# followed by an escaped quoted rendering
_PASSWORD_RE = re.compile(
    r'^password:[ \t]*(?:0x(?P<hex>[0-9A-Fa-f]*)[ \t]*)?(?:"(?P<text>.*)")?[ \t]*$',
    re.MULTILINE,
)
_ACCOUNT_RE = re.compile(r'"acct"<blob>="(.*?)"')
_SERVICE_RE = re.compile(r'"svce"<blob>="(.*?)"')


def _failure(action: str, service: str, account: str, returncode: int, stderr: bytes) -> SecretStoreError:
    code = JobError.ACCESS_DENIED if returncode in _ERR_ACCESS else JobError.OTHER_ERROR
    detail = stderr.decode("utf-8", errors="replace").strip()
    return SecretStoreError(
        f"security {action} failed for {service}/{account} (exit {returncode}): {detail}",
        code,
    )


class KeychainStore(SecretStore):
    """Stores secrets in macOS Keychain via the ``security`` CLI.

    Parameters
    ----------
    executable:
        The ``security`` binary to invoke. Defaults to the one on ``PATH``.
    """

    def __init__(self, executable: str = "security") -> None:
        self._executable = executable

    async def _run(self, *args: str) -> tuple[int, bytes, bytes]:
        """Run a ``security`` subcommand and return (returncode, stdout, stderr)."""
        proc = await asyncio.create_subprocess_exec(
            self._executable,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await proc.communicate()
        return proc.returncode or 0, stdout, stderr

    async def get(self, service: str, account: str) -> str | None:
        returncode, _stdout, stderr = await self._run(
            "find-generic-password",
            "-s", service,
            "-a", account,
            "-g",
        )
        if returncode == _ERR_ITEM_NOT_FOUND:
            return None
        if returncode != 0:
            raise _failure("find-generic-password", service, account, returncode, stderr)

        # The security CLI prints the password to stderr in the form:
        #   password: "thevalue"
        #   password: 0x70C3A4737377  "p\303\244ssw"
        match = _PASSWORD_RE.search(stderr.decode("utf-8", errors="replace"))
        if match is None:
            raise SecretStoreError(
                f"Unrecognised find-generic-password output for {service}/{account}"
            )
        if match.group("hex") is not None:
            try:
                return bytes.fromhex(match.group("hex")).decode("utf-8")
            except (ValueError, UnicodeDecodeError) as exc:
                raise SecretStoreError(
                    f"Stored secret for {service}/{account} is not UTF-8 text"
                ) from exc
        return match.group("text") or ""

    async def set(self, service: str, account: str, value: str) -> None:
        # The secret travels in argv, so it is visible in the process list
        # while the security command runs
        returncode, _, stderr = await self._run(
            "add-generic-password",
            "-s", service,
            "-a", account,
            "-w", value,
            "-U",
        )
        if returncode == _ERR_DUPLICATE_ITEM:
            # Delete existing and re-add
            await self._run(
                "delete-generic-password",
                "-s", service,
                "-a", account,
            )
            returncode, _, stderr = await self._run(
                "add-generic-password",
                "-s", service,
                "-a", account,
                "-w", value,
            )
        if returncode != 0:
            raise _failure("add-generic-password", service, account, returncode, stderr)

    async def delete(self, service: str, account: str) -> None:
        returncode, _, stderr = await self._run(
            "delete-generic-password",
            "-s", service,
            "-a", account,
        )
        # Silently ignore errSecItemNotFound
        if returncode not in (0, _ERR_ITEM_NOT_FOUND):
            raise _failure("delete-generic-password", service, account, returncode, stderr)

    async def list_accounts(self, service: str) -> list[str]:
        returncode, stdout, stderr = await self._run("dump-keychain")
        if returncode != 0:
            raise _failure("dump-keychain", service, "*", returncode, stderr)

        accounts: list[str] = []
        block_service: str | None = None
        block_account: str | None = None

        def flush() -> None:
            if block_service == service and block_account and block_account not in accounts:
                accounts.append(block_account)

        for line in stdout.decode("utf-8", errors="replace").splitlines():
            # Each item starts with a keychain: or class: header line
            if line.startswith(("keychain:", "class:")):
                flush()
                block_service = block_account = None
                continue
            svce = _SERVICE_RE.search(line)
            if svce:
                block_service = svce.group(1)
            acct = _ACCOUNT_RE.search(line)
            if acct:
                block_account = acct.group(1)
        flush()
        return accounts
