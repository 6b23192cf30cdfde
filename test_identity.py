# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false

"""Tests for claim canonicalisation and the identity verifiers."""

import httpx
import pytest

from teamflow.core.config import _parse_static_tokens
from teamflow.core.errors import StoreUnavailableError, UnauthenticatedError
from teamflow.models.domain import Role
from teamflow.services.identity import (
    HttpIdentityVerifier,
    StaticIdentityVerifier,
    parse_role,
    principal_from_claims,
)

LONG_ID = "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/nameidentifier"
LONG_ROLE = "http://schemas.microsoft.com/ws/2008/06/identity/claims/role"


class TestClaimVariants:
    def test_short_form(self):
        principal = principal_from_claims({"sub": "5", "role": "Admin", "active": True})
        assert principal.user_id == 5
        assert principal.role == Role.ADMIN
        assert principal.active is True

    def test_long_form(self):
        principal = principal_from_claims({LONG_ID: "7", LONG_ROLE: "Team Leader", "isActive": "true"})
        assert principal.user_id == 7
        assert principal.role == Role.TEAM_LEADER
        assert principal.active is True

    def test_both_forms_agreeing(self):
        principal = principal_from_claims({"nameid": "7", LONG_ID: "7", "role": "Member"})
        assert principal.user_id == 7

    def test_missing_active_claim_means_inactive(self):
        assert principal_from_claims({"sub": "5", "role": "Member"}).active is False

    @pytest.mark.parametrize("raw", ["Team Leader", "TeamLeader", "team_leader", "team-leader"])
    def test_role_spellings(self, raw):
        assert parse_role(raw) == Role.TEAM_LEADER


class TestRejectedClaims:
    def test_conflicting_user_ids(self):
        with pytest.raises(UnauthenticatedError) as exc_info:
            principal_from_claims({"sub": "5", LONG_ID: "6", "role": "Member"})
        assert exc_info.value.reason == "conflicting_claims"

    def test_conflicting_roles(self):
        with pytest.raises(UnauthenticatedError) as exc_info:
            principal_from_claims({"sub": "5", "role": "Member", LONG_ROLE: "Admin"})
        assert exc_info.value.reason == "conflicting_claims"

    def test_conflicting_active_flags(self):
        with pytest.raises(UnauthenticatedError):
            principal_from_claims({"sub": "5", "role": "Member", "active": True, "isActive": "false"})

    def test_missing_user_id(self):
        with pytest.raises(UnauthenticatedError) as exc_info:
            principal_from_claims({"role": "Member"})
        assert exc_info.value.reason == "missing_claim"

    def test_malformed_user_id(self):
        with pytest.raises(UnauthenticatedError) as exc_info:
            principal_from_claims({"sub": "alice", "role": "Member"})
        assert exc_info.value.reason == "malformed_claim"

    def test_unknown_role(self):
        with pytest.raises(UnauthenticatedError) as exc_info:
            principal_from_claims({"sub": "5", "role": "Owner"})
        assert exc_info.value.reason == "unknown_role"


class TestStaticVerifier:
    def test_known_token(self):
        verifier = StaticIdentityVerifier(_parse_static_tokens("t1=3:Member, t2=1:Admin:true"))
        assert verifier.verify("t1").user_id == 3
        assert verifier.verify("t2").role == Role.ADMIN

    def test_unknown_token(self):
        with pytest.raises(UnauthenticatedError) as exc_info:
            StaticIdentityVerifier({}).verify("nope")
        assert exc_info.value.reason == "invalid_token"

    def test_token_table_parsing(self):
        tokens = _parse_static_tokens("a=1:Admin,b=2:Team Leader:false,broken,c=")
        assert tokens == {
            "a": {"sub": "1", "role": "Admin", "active": "true"},
            "b": {"sub": "2", "role": "Team Leader", "active": "false"},
        }


class TestHttpVerifier:
    def _verifier(self, handler):
        return HttpIdentityVerifier("http://identity", 1.0, transport=httpx.MockTransport(handler))

    def test_introspection(self):
        def handler(request):
            assert request.url.path == "/api/v1/auth/introspect"
            return httpx.Response(200, json={"valid": True, "claims": {"nameid": "4", "role": "Member",
                                                                       "active": "true"}})
        principal = self._verifier(handler).verify("tok")
        assert principal.user_id == 4
        assert principal.role == Role.MEMBER

    def test_rejected_token(self):
        verifier = self._verifier(lambda request: httpx.Response(401, json={"detail": "expired"}))
        with pytest.raises(UnauthenticatedError):
            verifier.verify("tok")

    def test_invalid_flag(self):
        verifier = self._verifier(lambda request: httpx.Response(200, json={"valid": False}))
        with pytest.raises(UnauthenticatedError):
            verifier.verify("tok")

    def test_provider_down(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)
        with pytest.raises(StoreUnavailableError):
            self._verifier(handler).verify("tok")

    def test_provider_error(self):
        verifier = self._verifier(lambda request: httpx.Response(503))
        with pytest.raises(StoreUnavailableError):
            verifier.verify("tok")
