"""A nullable UUID value with PostgreSQL text/binary and JSON encodings."""

from __future__ import annotations

import enum
import json
import re
import uuid as _stduuid
from dataclasses import dataclass, field
from typing import Any, Optional

from .ids import EMPTY_UUID, UUID

_UUID_BINARY_LENGTH = 16
_UUID_STR_SHORT_LENGTH = 32
_UUID_STR_FULL_LENGTH = 36
_HEX32 = re.compile(r"[0-9a-fA-F]{32}")


class Status(enum.Enum):
    UNDEFINED = 0
    NULL = 1
    PRESENT = 2


def from_binary(src: bytes) -> str:
    """Format 16 raw bytes as a dashed UUID string."""
    if len(src) != _UUID_BINARY_LENGTH:
        raise ValueError(f"invalid length for UUID: {len(src)}")
    text = bytes(src).hex()
    return f"{text[0:8]}-{text[8:12]}-{text[12:16]}-{text[16:20]}-{text[20:32]}"


def to_binary(src: str) -> bytes:
    """Convert a UUID string, dashed or not, to 16 raw bytes."""
    if len(src) == _UUID_STR_FULL_LENGTH:
        src = src[0:8] + src[9:13] + src[14:18] + src[19:23] + src[24:]
    elif len(src) != _UUID_STR_SHORT_LENGTH:
        raise ValueError(f"cannot parse UUID {src}")

    if not _HEX32.fullmatch(src):
        raise ValueError(f"invalid hex in UUID {src}")
    return bytes.fromhex(src)


@dataclass
class PgUUID:
    """A UUID together with its presence status."""

    uuid: UUID = field(default_factory=lambda: UUID(""))
    status: Status = Status.UNDEFINED

    def _assign(self, uuid: UUID, status: Status) -> None:
        self.uuid = uuid
        self.status = status

    def _set_null(self) -> None:
        self._assign(UUID(""), Status.NULL)

    def set(self, value: Any) -> None:
        """Set from None, a UUID, a string, 16 raw bytes or another PgUUID."""
        if isinstance(value, PgUUID):
            value = value.get()

        if value is None:
            self._set_null()
        elif isinstance(value, UUID):
            if value == EMPTY_UUID:
                self._set_null()
            else:
                self._assign(value, Status.PRESENT)
        elif isinstance(value, _stduuid.UUID):
            self._assign(UUID(from_binary(value.bytes)), Status.PRESENT)
        elif isinstance(value, (bytes, bytearray, memoryview)):
            self._assign(UUID(from_binary(bytes(value))), Status.PRESENT)
        elif isinstance(value, str):
            if len(value) == _UUID_STR_SHORT_LENGTH:
                value = f"{value[0:8]}-{value[8:12]}-{value[12:16]}-{value[16:20]}-{value[20:32]}"
            self._assign(UUID(value), Status.PRESENT)
        else:
            raise TypeError(f"cannot convert {value!r} of type {type(value).__name__} to UUID")

    def get(self) -> Any:
        """Return the UUID if present, None if null, else the status."""
        if self.status is Status.PRESENT:
            return self.uuid
        if self.status is Status.NULL:
            return None
        return self.status

    def assign_to(self, kind: type) -> Any:
        """Return the value converted to ``kind``; None when the value is null."""
        if self.status is Status.PRESENT:
            if isinstance(kind, type):
                if issubclass(kind, str):
                    return kind(str(self.uuid))
                if kind is _stduuid.UUID:
                    return _stduuid.UUID(bytes=to_binary(self.uuid))
                if issubclass(kind, (bytes, bytearray)):
                    return kind(to_binary(self.uuid))
            raise TypeError(f"unable to assign to {kind!r}")
        if self.status is Status.NULL:
            return None
        raise ValueError(f"cannot assign {self!r} into {kind!r}")

    def decode_text(self, value: Optional[bytes]) -> None:
        if value is None:
            self._set_null()
            return
        candidate = UUID(bytes(value).decode("utf-8", errors="replace"))
        candidate.validate()
        self._assign(candidate, Status.PRESENT)

    def decode_binary(self, value: Optional[bytes]) -> None:
        if value is None:
            self._set_null()
            return
        self._assign(UUID(from_binary(value)), Status.PRESENT)

    def _require_defined(self) -> None:
        if self.status is Status.UNDEFINED:
            raise ValueError("cannot encode status undefined")

    def encode_text(self) -> Optional[bytes]:
        """Return the text encoding, or None for a null value."""
        if self.status is Status.NULL:
            return None
        self._require_defined()
        return str(self.uuid).encode("utf-8")

    def encode_binary(self) -> Optional[bytes]:
        """Return the 16-byte binary encoding, or None for a null value."""
        if self.status is Status.NULL:
            return None
        self._require_defined()
        return to_binary(self.uuid)

    def scan(self, value: Any) -> None:
        """Set from a database value: None, str or bytes."""
        if value is None:
            self._set_null()
        elif isinstance(value, str):
            self.decode_text(value.encode("utf-8"))
        elif isinstance(value, (bytes, bytearray)):
            self.decode_text(bytes(value))
        else:
            raise TypeError(f"cannot scan {type(value).__name__}")

    def value(self) -> Optional[str]:
        """Return the value as a driver would send it: text, or None for null."""
        encoded = self.encode_text()
        return None if encoded is None else encoded.decode("utf-8")

    def marshal_json(self) -> bytes:
        if self.status is Status.PRESENT:
            return b'"' + str(self.uuid).encode("utf-8") + b'"'
        if self.status is Status.NULL:
            return b"null"
        raise ValueError("cannot encode status undefined")

    def unmarshal_json(self, data: bytes | str) -> None:
        self._assign(EMPTY_UUID, Status.UNDEFINED)

        decoded = json.loads(data)
        if decoded is not None:
            if not isinstance(decoded, str):
                raise ValueError(f"cannot unmarshal {type(decoded).__name__} into UUID")
            self.uuid = UUID(decoded)

        if self.uuid.is_valid() and self.uuid != EMPTY_UUID:
            self.status = Status.PRESENT
        else:
            self.status = Status.NULL