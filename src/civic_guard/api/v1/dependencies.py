"""Shared API dependencies for authentication and service wiring."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from civic_guard.core.security import decode_access_token
from civic_guard.db.session import get_db
from civic_guard.models import Account
from civic_guard.services.anonymity import AnonymityGuard
from civic_guard.services.errors import (
    AlreadyDecided,
    AlreadyVoted,
    InvalidState,
    ItemNotFound,
    ModerationError,
    PermissionDenied,
    ValidationError,
)
from civic_guard.services.pipeline import ModerationPipeline

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]

ERROR_STATUS_CODES: dict[type[ModerationError], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ItemNotFound: status.HTTP_404_NOT_FOUND,
    PermissionDenied: status.HTTP_403_FORBIDDEN,
    InvalidState: status.HTTP_409_CONFLICT,
    AlreadyVoted: status.HTTP_409_CONFLICT,
    AlreadyDecided: status.HTTP_409_CONFLICT,
}


def http_error(exc: ModerationError) -> HTTPException:
    """Translate a pipeline exception into the matching HTTP error."""
    for error_type, status_code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Moderation pipeline error",
    )


def get_current_account(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: SessionDep,
) -> Account:
    """Get the authenticated account from the bearer token.

    Raises:
        HTTPException: If the token is invalid or the account is unknown
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        subject = decode_access_token(credentials.credentials)
    except JWTError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err

    if subject is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )

    account = db.get(Account, subject)
    if account is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account not found",
        )
    return account


def get_pipeline(db: SessionDep) -> ModerationPipeline:
    """Return a pipeline bound to the request's session."""
    return ModerationPipeline(db)


def get_anonymity_guard(
    db: SessionDep,
    pipeline: Annotated[ModerationPipeline, Depends(get_pipeline)],
) -> AnonymityGuard:
    """Return the anonymous intake service bound to the request's pipeline."""
    return AnonymityGuard(db, pipeline)


# Type aliases for the dependencies above
CurrentAccountDep = Annotated[Account, Depends(get_current_account)]
PipelineDep = Annotated[ModerationPipeline, Depends(get_pipeline)]
AnonymityDep = Annotated[AnonymityGuard, Depends(get_anonymity_guard)]
