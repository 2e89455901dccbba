"""Parsing and verification of access and ID tokens signed with the configured key sets."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

import jwt as _pyjwt

from . import jwk

TOKEN_USE_ACCESS = "access"
TOKEN_USE_ID = "id"

_ALGORITHMS = ["RS256", "RS384", "RS512", "PS256", "PS384", "PS512"]


class NotValidNowError(Exception):
    """The token is expired or not yet valid."""

    def __init__(self, underlying: BaseException) -> None:
        super().__init__(f"token is not valid right now: {underlying}")
        self.underlying = underlying
        self.__cause__ = underlying


def _time(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(float(value), tz=timezone.utc)


@dataclass
class Claims:
    """Registered, Cognito and Enlight claims of a token."""

    issuer: str = ""
    subject: str = ""
    audience: list = field(default_factory=list)
    expires_at: Optional[datetime] = None
    not_before: Optional[datetime] = None
    issued_at: Optional[datetime] = None
    id: str = ""
    username: str = ""
    token_use: str = ""
    cognito_groups: list = field(default_factory=list)
    enlight_user_id: str = ""
    enlight_company_id: str = ""
    enlight_access: str = ""
    enlight_roles: str = ""
    enlight_email: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Claims":
        audience = data.get("aud") or []
        if isinstance(audience, str):
            audience = [audience]
        return cls(
            issuer=data.get("iss", ""),
            subject=data.get("sub", ""),
            audience=list(audience),
            expires_at=_time(data.get("exp")),
            not_before=_time(data.get("nbf")),
            issued_at=_time(data.get("iat")),
            id=data.get("jti", ""),
            username=data.get("username", ""),
            token_use=data.get("token_use", ""),
            cognito_groups=list(data.get("cognito:groups") or []),
            enlight_user_id=data.get("enlightUserId", ""),
            enlight_company_id=data.get("enlightCompanyId", ""),
            enlight_access=data.get("enlightAccess", ""),
            enlight_roles=data.get("enlightRoles", ""),
            enlight_email=data.get("enlightEmail", ""),
        )

    def validate(self) -> None:
        """Raise ValueError unless the claims fit their token use."""
        if self.token_use == TOKEN_USE_ACCESS:
            if not self.username:
                raise ValueError("missing username in claims")
        elif self.token_use == TOKEN_USE_ID:
            if not self.enlight_user_id:
                raise ValueError("missing enlight user ID in claims")
        else:
            raise ValueError(
                f"wrong type of token: {self.token_use}, should be {TOKEN_USE_ACCESS} or {TOKEN_USE_ID}"
            )


@dataclass
class Token:
    raw: str
    header: dict
    claims: Optional[Claims]
    signature: bytes = b""
    valid: bool = False

    def get_claims(self) -> Claims:
        return self.claims if self.claims is not None else Claims()


def _signing_key(header: Mapping[str, Any]):
    try:
        key_sets = jwk.get_key_sets()
    except Exception as exc:
        raise ValueError(f"failed to get key sets: {exc}") from exc

    key_id = header.get("kid")
    if not isinstance(key_id, str):
        raise ValueError("expecting JWT header to have string `kid`")

    try:
        key = key_sets.lookup_key_id(key_id)
    except Exception as exc:
        raise ValueError(f"failed to lookup key id: {exc}") from exc
    return key.public_key()


def parse(jwt_token: str) -> Token:
    """Verify ``jwt_token`` against the key sets and return it with its claims."""
    try:
        header = _pyjwt.get_unverified_header(jwt_token)
        key = _signing_key(header)
        payload = _pyjwt.decode(
            jwt_token,
            key,
            algorithms=_ALGORITHMS,
            options={"verify_aud": False},
        )
        claims = Claims.from_dict(payload)
        claims.validate()
    except (_pyjwt.ExpiredSignatureError, _pyjwt.ImmatureSignatureError) as exc:
        raise NotValidNowError(exc) from exc
    except (_pyjwt.PyJWTError, ValueError, TypeError) as exc:
        raise ValueError(f"parse with claims failed: {exc}") from exc

    signature = jwt_token.rsplit(".", 1)[-1]
    return Token(raw=jwt_token, header=dict(header), claims=claims, signature=signature.encode(), valid=True)