from typing import Annotated

from dependency_injector.wiring import Provide, inject
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.container import ApplicationContainer
from app.models.user import User
from app.repos.user import UserRepo

security = HTTPBearer()


@inject
async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    user_repo: UserRepo = Depends(Provide[ApplicationContainer.repos.user]),
) -> User:
    """
    FastAPI dependency resolving the user that owns the API key in the Authorization header.

    Raises:
        HTTPException: If the API key is unknown
    """
    user = await user_repo.get_by_api_key(credentials.credentials)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key.")

    return user
