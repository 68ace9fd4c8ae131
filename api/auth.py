"""
Auth API Router
Registration, login and the current account
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from api.deps import get_db, get_current_user, services
from api.schemas.auth import TokenResponse, UserLogin, UserRegister, UserResponse
from services.auth_service import create_access_token
from services.errors import AuthenticationError
import models


router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: UserRegister,
    db: Session = Depends(get_db)
):
    """
    Create an account and return an access token

    Patients get a share code that caregivers use to follow them.
    """
    auth_service = services.get_auth_service()
    profile = data.model_dump(exclude={"email", "password", "name", "profile_type"}, exclude_none=True)

    try:
        user = await auth_service.register(
            email=data.email,
            password=data.password,
            name=data.name,
            profile_type=data.profile_type,
            db=db,
            **profile
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return TokenResponse(token=create_access_token(user.id), user=UserResponse.model_validate(user))


@router.post("/login", response_model=TokenResponse)
async def login(
    data: UserLogin,
    db: Session = Depends(get_db)
):
    auth_service = services.get_auth_service()

    try:
        user, token = await auth_service.login(data.email, data.password, db)
    except AuthenticationError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))

    return TokenResponse(token=token, user=UserResponse.model_validate(user))


@router.get("/me", response_model=UserResponse)
async def get_me(user: models.User = Depends(get_current_user)):
    """Current account"""
    return user
