# backend/ruralcare/api/routes/auth_routes.py

import logging

from fastapi import APIRouter, Depends, HTTPException

from ruralcare.api.deps import get_access_token, get_current_user
from ruralcare.models.auth import AuthSession, SigninRequest, SignupRequest
from ruralcare.models.session import UserProfile
from ruralcare.services import auth_service
from ruralcare.services.auth_service import AuthError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup")
async def signup(request: SignupRequest):
    try:
        profile = auth_service.create_user(request)
    except AuthError as e:
        logger.warning("Auth signup error: %s", e)
        raise HTTPException(status_code=400, detail=str(e))
    return {"profile": profile}


@router.post("/signin", response_model=AuthSession)
async def signin(request: SigninRequest):
    try:
        return auth_service.sign_in(request.email, request.password)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/signout")
async def signout(token: str = Depends(get_access_token)):
    auth_service.sign_out(token)
    return {"success": True}


@router.get("/profile")
async def profile(user: UserProfile = Depends(get_current_user)):
    return {"profile": user}
