from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from app.auth.schemas import CurrentPrincipal
from app.core.config import settings
from app.core.exceptions import ServiceError
from app.db.repository import SqlAlchemyStore, get_store

# Tokens are minted by the external identity provider; tokenUrl is informational only.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/v1/token")


async def get_current_principal(
    token: str = Depends(oauth2_scheme),
    store: SqlAlchemyStore = Depends(get_store),
) -> CurrentPrincipal:
    """Resolve the calling principal from the identity provider's access token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options={"verify_aud": settings.jwt_audience is not None},
        )
    except JWTError:
        raise credentials_exception

    principal_id_str = payload.get("sub") or payload.get("user_id")
    if not principal_id_str:
        raise credentials_exception
    try:
        principal_id = UUID(principal_id_str)
    except ValueError:
        raise credentials_exception

    try:
        principal = await store.get_principal(principal_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not principal:
        raise credentials_exception

    return CurrentPrincipal(id=principal.id, role=principal.role, name=principal.name)
