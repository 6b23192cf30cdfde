# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Identity verification: bearer token in, canonical Principal out.

Token signing and expiry belong to the identity provider; this module only
asks it for the token's claims and resolves the several claim spellings the
provider has used over time into one ``Principal`` shape, so nothing
downstream ever looks at raw claim keys.
"""

from typing import Any, Optional

import httpx

from teamflow.core.errors import StoreUnavailableError, UnauthenticatedError
from teamflow.core.logging import get_logger
from teamflow.models.domain import Principal, Role

logger = get_logger(__name__)

USER_ID_CLAIMS = (
    "sub",
    "nameid",
    "user_id",
    "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/nameidentifier",
)
ROLE_CLAIMS = (
    "role",
    "http://schemas.microsoft.com/ws/2008/06/identity/claims/role",
)
ACTIVE_CLAIMS = ("active", "isActive", "is_active")

_ROLE_ALIASES = {
    "member": Role.MEMBER,
    "teamleader": Role.TEAM_LEADER,
    "admin": Role.ADMIN,
}


def _single_claim(claims: dict[str, Any], keys: tuple[str, ...], label: str) -> Any:
    values = {str(claims[k]) for k in keys if claims.get(k) not in (None, "")}
    if not values:
        raise UnauthenticatedError(f"Token carries no {label} claim", reason="missing_claim")
    if len(values) > 1:
        raise UnauthenticatedError(
            f"Token carries conflicting {label} claims", reason="conflicting_claims",
        )
    return values.pop()


def parse_role(value: str) -> Role:
    key = value.replace(" ", "").replace("_", "").replace("-", "").lower()
    role = _ROLE_ALIASES.get(key)
    if role is None:
        raise UnauthenticatedError(f"Unknown role '{value}'", reason="unknown_role")
    return role


def _parse_active(claims: dict[str, Any]) -> bool:
    values = set()
    for key in ACTIVE_CLAIMS:
        raw = claims.get(key)
        if raw is None:
            continue
        if isinstance(raw, bool):
            values.add(raw)
        else:
            values.add(str(raw).strip().lower() == "true")
    if len(values) > 1:
        raise UnauthenticatedError(
            "Token carries conflicting active claims", reason="conflicting_claims",
        )
    return values.pop() if values else False


def principal_from_claims(claims: dict[str, Any]) -> Principal:
    """Resolve long-form/short-form claim variants into a Principal."""
    raw_id = _single_claim(claims, USER_ID_CLAIMS, "user id")
    try:
        user_id = int(raw_id)
    except ValueError:
        raise UnauthenticatedError(f"Malformed user id claim '{raw_id}'", reason="malformed_claim")
    role = parse_role(_single_claim(claims, ROLE_CLAIMS, "role"))
    return Principal(user_id=user_id, role=role, active=_parse_active(claims))


class StaticIdentityVerifier:
    """Token table verifier for local runs and tests."""

    def __init__(self, tokens: dict[str, dict[str, Any]]) -> None:
        self._tokens = dict(tokens)

    def add_token(self, token: str, claims: dict[str, Any]) -> None:
        self._tokens[token] = claims

    def verify(self, token: str) -> Principal:
        claims = self._tokens.get(token)
        if claims is None:
            raise UnauthenticatedError("Invalid token", reason="invalid_token")
        return principal_from_claims(claims)


class HttpIdentityVerifier:
    """Asks the identity provider to introspect the token."""

    def __init__(self, base_url: str, timeout: float,
                 transport: Optional[httpx.BaseTransport] = None) -> None:
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"), timeout=timeout, transport=transport,
        )

    def verify(self, token: str) -> Principal:
        try:
            resp = self._client.post("/api/v1/auth/introspect", json={"token": token})
        except httpx.HTTPError as exc:
            logger.warning("Identity provider unreachable: %s", exc)
            raise StoreUnavailableError(f"Identity provider unreachable: {exc}", store="identity") from exc
        if resp.status_code in (400, 401, 403):
            raise UnauthenticatedError("Invalid token", reason="invalid_token")
        if resp.status_code >= 400:
            raise StoreUnavailableError(
                f"Identity provider answered {resp.status_code}", store="identity",
            )
        body = resp.json()
        claims = body.get("claims", body) if isinstance(body, dict) else {}
        if isinstance(body, dict) and body.get("valid") is False:
            raise UnauthenticatedError("Invalid token", reason="invalid_token")
        return principal_from_claims(claims)

    def close(self) -> None:
        self._client.close()
