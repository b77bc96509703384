# backend/ruralcare/api/deps.py

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ruralcare.models.session import UserProfile
from ruralcare.services import auth_service

security = HTTPBearer(auto_error=False)


def get_access_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> str:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No authorization token provided")
    return credentials.credentials


def get_current_user(token: str = Depends(get_access_token)) -> UserProfile:
    """Resolve the bearer token to the signed-in user's profile."""
    user_id = auth_service.get_user_id(token)
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authorization token")

    profile = auth_service.get_profile(user_id)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return profile
