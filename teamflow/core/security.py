# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Bearer-token authentication dependency."""
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from teamflow.core.dependencies import get_identity_verifier
from teamflow.core.errors import UnauthenticatedError
from teamflow.models.domain import Principal

bearer_scheme = HTTPBearer(auto_error=False)


def get_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    verifier=Depends(get_identity_verifier),
) -> Principal:
    """Resolve the caller's token into a canonical Principal or raise 401."""
    if credentials is None or not credentials.credentials:
        raise UnauthenticatedError("Not authenticated", reason="missing_token")
    return verifier.verify(credentials.credentials)
