"""Textual UUID values and helpers for creating and validating them."""

from __future__ import annotations

import string
import uuid as _stduuid

_HEX_DIGITS = frozenset(string.hexdigits)
_DASH_POSITIONS = (8, 13, 18, 23)
_GROUP_LENGTHS = [8, 4, 4, 4, 12]
_URN_PREFIX = "urn:uuid:"


def _is_hex(text: str) -> bool:
    return all(char in _HEX_DIGITS for char in text)


def _parse(text: str) -> None:
    """Raise ValueError unless ``text`` is a UUID in one of the accepted forms."""
    length = len(text)
    if length == 32:
        if not _is_hex(text):
            raise ValueError("invalid UUID format")
        return

    if length == 36:
        body = text
    elif length == 38:
        if text[0] != "{" or text[-1] != "}":
            raise ValueError("invalid UUID format")
        body = text[1:-1]
    elif length == 45:
        if text[:9].lower() != _URN_PREFIX:
            raise ValueError(f"invalid urn prefix: {text[:9]!r}")
        body = text[9:]
    else:
        raise ValueError(f"invalid UUID length: {length}")

    if any(body[position] != "-" for position in _DASH_POSITIONS):
        raise ValueError("invalid UUID format")

    groups = body.split("-")
    if [len(group) for group in groups] != _GROUP_LENGTHS or not all(map(_is_hex, groups)):
        raise ValueError("invalid UUID format")


class UUID(str):
    """A UUID kept in its textual form."""

    __slots__ = ()

    def validate(self) -> None:
        """Raise ValueError if the text is not a well-formed UUID."""
        _parse(self)

    def is_valid(self) -> bool:
        try:
            self.validate()
        except ValueError:
            return False
        return True


EMPTY_UUID = UUID("00000000-0000-0000-0000-000000000000")


def new_uuid() -> UUID:
    """Return a new random UUID."""
    return UUID(str(_stduuid.uuid4()))


def is_valid(value: str) -> bool:
    return UUID(value).is_valid()


def string_list(*ids: UUID) -> list[str]:
    """Return the given UUIDs as plain strings, in order."""
    return [str(identifier) for identifier in ids]