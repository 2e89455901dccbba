"""Fetching, caching and decoding of JSON Web Key sets used to verify tokens."""

from __future__ import annotations

import base64
import json
import re
import threading
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey, RSAPublicNumbers

STAGE_PROD = "prod"
STAGE_STAGING = "staging"
STAGE_VERIFICATION = "verification"
STAGE_TEST = "test"
STAGE_SANDBOX = "sandbox"
STAGE_LOCAL = "local"

_ALLOWED_STAGES = frozenset({STAGE_PROD, STAGE_STAGING, STAGE_VERIFICATION, STAGE_TEST, STAGE_SANDBOX})
_SMALLEST_EXP_LENGTH = 4
_RAW_URL_B64 = re.compile(r"[A-Za-z0-9_-]*")
_FETCH_TIMEOUT = 30.0


@dataclass(frozen=True)
class Config:
    stage: str


@dataclass
class _Settings:
    config: Optional[Config] = None
    key_set_url: str = ""


_settings = _Settings()
_lock = threading.Lock()


def configure(config: Optional[Config]) -> None:
    """Select the stage whose key set is used; None clears the configuration."""
    if config is not None and not isinstance(config, Config):
        raise TypeError(f"expected a Config or None, got {type(config).__name__}")
    _settings.config = config


def set_key_set_url(url: str) -> None:
    """Fetch key sets from ``url`` when no stage is configured."""
    if not isinstance(url, str):
        raise TypeError(f"expected a string URL, got {type(url).__name__}")
    _settings.key_set_url = url


def _raw_url_decode(text: str, what: str) -> bytes:
    if not _RAW_URL_B64.fullmatch(text) or len(text) % 4 == 1:
        raise ValueError(f"failed to decode key set `{what}`: illegal base64 data")
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


@dataclass(frozen=True)
class JWKeySet:
    """One JSON Web Key."""

    algorithm: str = ""
    exp: str = ""
    key_id: str = ""
    key_type: str = ""
    mod: str = ""
    use: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "JWKeySet":
        def text(key: str) -> str:
            value = data.get(key, "")
            if not isinstance(value, str):
                raise ValueError(f"key set field {key!r} must be a string")
            return value

        return cls(text("alg"), text("e"), text("kid"), text("kty"), text("n"), text("use"))

    def public_key(self) -> RSAPublicKey:
        """Return the RSA public key described by the modulus and exponent."""
        exponent = _raw_url_decode(self.exp, "exp").rjust(_SMALLEST_EXP_LENGTH, b"\0")
        modulus = _raw_url_decode(self.mod, "mod")
        numbers = RSAPublicNumbers(
            int.from_bytes(exponent[:_SMALLEST_EXP_LENGTH], "big"),
            int.from_bytes(modulus, "big"),
        )
        try:
            return numbers.public_key()
        except ValueError as exc:
            raise ValueError(f"invalid RSA public key: {exc}") from exc


def _find_signing_key(key_sets: list, key_id: str) -> Optional[JWKeySet]:
    return next((ks for ks in key_sets if ks.key_id == key_id and ks.use == "sig"), None)


class JWKeySets(list):
    """A list of JWKeySet values."""

    def lookup_key_id(self, key_id: str) -> JWKeySet:
        """Return the signing key with ``key_id``, refreshing the cached sets once on a miss."""
        found = _find_signing_key(self, key_id)
        if found is not None:
            return found

        refresh_key_sets()
        found = _find_signing_key(_key_sets, key_id)
        if found is None:
            raise LookupError("unable to find public key")
        return found


_key_sets = JWKeySets()


def get_key_sets() -> JWKeySets:
    """Return the cached key sets, fetching them first if none are cached."""
    with _lock:
        if not _key_sets:
            refresh_key_sets()
        return _key_sets


def _key_sets_url() -> str:
    config = _settings.config
    if config is None:
        if not _settings.key_set_url:
            raise RuntimeError("jwk is not configured")
        return _settings.key_set_url
    if config.stage not in _ALLOWED_STAGES:
        raise RuntimeError(f"stage {config.stage} is not allowed")
    if config.stage == STAGE_PROD:
        return "https://sso-api.users.enlight.skf.com/jwks"
    return "https://sso-api." + config.stage + ".users.enlight.skf.com/jwks"


def refresh_key_sets() -> None:
    """Fetch the key sets again and replace the cached ones."""
    global _key_sets
    try:
        url = _key_sets_url()
    except RuntimeError as exc:
        raise RuntimeError(f"failed to get key sets URL: {exc}") from exc

    try:
        with urllib.request.urlopen(url, timeout=_FETCH_TIMEOUT) as response:  # noqa: S310
            status = response.status
            body = response.read()
    except urllib.error.HTTPError as exc:
        raise RuntimeError(f"received non 200 status code when fetching key sets, {exc.code}") from exc
    except (urllib.error.URLError, OSError, ValueError) as exc:
        raise RuntimeError(f"failed to fetch key sets: {exc}") from exc

    if status != 200:
        raise RuntimeError(f"received non 200 status code when fetching key sets, {status}")

    try:
        data = json.loads(body)
        if not isinstance(data, dict):
            raise ValueError("expected a JSON object")
        for name in ("Keys", "keys", "data"):
            if name in data:
                entries = data[name] or []
                if not isinstance(entries, list):
                    raise ValueError(f"{name!r} must be an array")
                _key_sets = JWKeySets(JWKeySet.from_dict(entry) for entry in entries)
                return
    except ValueError as exc:
        raise RuntimeError(f"failed to unmarshal key sets: {exc}") from exc

    raise RuntimeError("failed to find key sets in response")