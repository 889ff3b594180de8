"""Fernet-encrypted JSON file backend for secret storage.

Used on Linux/Docker where macOS Keychain is not available (the "insecure
fallback"). Derives an encryption key from a master password using
PBKDF2-HMAC-SHA256, then encrypts the entire JSON secrets blob with Fernet.
The decrypted document is ``{service: {account: secret}}``.
"""

from __future__ import annotations

import asyncio
import base64
import json
import pathlib

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from credentials_manager.errors import JobError, SecretStoreError
from credentials_manager.secrets.store import SecretStore

# Fixed salt -- acceptable for a local-only file where the threat model is
# casual disk access, not offline brute-force against a leaked database.
_SALT = b"credentials-manager-secrets-v1"
_ITERATIONS = 480_000

_Document = dict[str, dict[str, str]]


def _derive_key(master_password: str) -> bytes:
    """Derive a 32-byte Fernet key from the master password via PBKDF2."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=_SALT,
        iterations=_ITERATIONS,
    )
    return base64.urlsafe_b64encode(kdf.derive(master_password.encode("utf-8")))


class EncryptedFileStore(SecretStore):
    """Stores secrets as a Fernet-encrypted JSON file on disk.

    Parameters
    ----------
    file_path:
        Path to the encrypted secrets file. Created on first write.
    master_password:
        Password used to derive the Fernet encryption key via PBKDF2.
    """

    def __init__(self, file_path: pathlib.Path, master_password: str) -> None:
        self._path = file_path
        self._fernet = Fernet(_derive_key(master_password))
        # Serializes read-modify-write cycles on the file
        self._lock = asyncio.Lock()

    def _read_store(self) -> _Document:
        """Read and decrypt the secrets file. Returns empty dict if missing."""
        if not self._path.exists():
            return {}
        ciphertext = self._path.read_bytes()
        try:
            plaintext = self._fernet.decrypt(ciphertext)
        except InvalidToken as exc:
            raise SecretStoreError(
                f"Cannot decrypt {self._path}: wrong master password or corrupt file",
                JobError.ACCESS_DENIED,
            ) from exc
        return json.loads(plaintext)

    def _write_store(self, data: _Document) -> None:
        """Encrypt and write the secrets to disk."""
        plaintext = json.dumps(data, sort_keys=True).encode("utf-8")
        ciphertext = self._fernet.encrypt(plaintext)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_bytes(ciphertext)

    async def get(self, service: str, account: str) -> str | None:
        async with self._lock:
            store = self._read_store()
        return store.get(service, {}).get(account)

    async def set(self, service: str, account: str, value: str) -> None:
        async with self._lock:
            store = self._read_store()
            store.setdefault(service, {})[account] = value
            self._write_store(store)

    async def delete(self, service: str, account: str) -> None:
        async with self._lock:
            store = self._read_store()
            accounts = store.get(service)
            if accounts is None or account not in accounts:
                return
            del accounts[account]
            if not accounts:
                del store[service]
            self._write_store(store)

    async def list_accounts(self, service: str) -> list[str]:
        async with self._lock:
            store = self._read_store()
        return list(store.get(service, {}).keys())
