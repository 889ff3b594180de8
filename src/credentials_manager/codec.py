"""Serialization of structured credentials for the secret store.

Structured credentials are written to the keychain as a JSON object. Both
directions report success through an ``ok`` flag instead of raising, since
callers treat a failure as a fallback case rather than an error.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Protocol

from credentials_manager.values import Scalar

logger = logging.getLogger(__name__)

_SCALAR_TYPES = (str, int, float, bool, type(None))


class Codec(Protocol):
    def encode(self, fields: Mapping[str, Scalar]) -> tuple[bytes, bool]: ...

    def decode(self, data: bytes) -> tuple[dict[str, Scalar], bool]: ...


class JsonCodec:
    """Encodes structured credentials as compact JSON objects."""

    def encode(self, fields: Mapping[str, Scalar]) -> tuple[bytes, bool]:
        """Serialize *fields*. Returns ``(b"", False)`` if any key or value is unsupported."""
        for name, value in fields.items():
            if not isinstance(name, str) or not isinstance(value, _SCALAR_TYPES):
                return b"", False
        try:
            text = json.dumps(dict(fields), sort_keys=True, allow_nan=False)
        except (TypeError, ValueError):
            return b"", False
        return text.encode("utf-8"), True

    def decode(self, data: bytes) -> tuple[dict[str, Scalar], bool]:
        """Parse *data*.

        ``ok`` reports whether *data* was valid JSON. Only a top-level object
        of scalar values yields fields. Any other JSON document, including an
        object holding nested containers, decodes to an empty mapping so the
        caller keeps the raw text intact.
        """
        try:
            parsed = json.loads(data)
        except (UnicodeDecodeError, ValueError):
            return {}, False

        if not isinstance(parsed, dict):
            return {}, True

        for name, value in parsed.items():
            if not isinstance(value, _SCALAR_TYPES):
                logger.debug("Credential field %r is not a scalar, keeping raw text", name)
                return {}, True
        return parsed, True
