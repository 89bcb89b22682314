# app/routes/users.py
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

# Controllers
from app.controllers.user_controller import (
    change_password,
    forgot_password,
    get_user,
    login_user,
    register_user,
    reset_password,
    update_user,
)

# Schemas
from app.schemas.user_schema import (
    ForgotPasswordRequest,
    ResetPasswordRequest,
    UserCreate,
    UserLogin,
    UserPasswordUpdate,
    UserUpdate,
)

# Models
from app.models.user import User

# Core
from app.core.auth import get_current_user, refresh_token
from app.core.database import get_db
from app.core.rate_limiter import limiter
from app.core.responses import BaseResponse
import os

router = APIRouter()


@router.post("/register", response_model=BaseResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(os.getenv("RATE_LIMIT_USER_DEFAULT", "100/hour"))
def register(request: Request, user: UserCreate, db: Session = Depends(get_db)):
    return register_user(user, db)


@router.post("/login", response_model=BaseResponse)
@limiter.limit(os.getenv("RATE_LIMIT_LOGIN", "5/minute"))
def login(request: Request, credentials: UserLogin, db: Session = Depends(get_db)):
    return login_user(credentials, db)


@router.post("/refresh", response_model=BaseResponse)
@limiter.limit(os.getenv("RATE_LIMIT_USER_DEFAULT", "100/hour"))
def refresh(request: Request, token: str, db: Session = Depends(get_db)):
    return refresh_token(token, db)


@router.get("/me", response_model=BaseResponse)
@limiter.limit(os.getenv("RATE_LIMIT_USER_DEFAULT", "100/hour"))
def get_me(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return get_user(current_user.UserID, db)


@router.put("/me", response_model=BaseResponse)
@limiter.limit(os.getenv("RATE_LIMIT_USER_DEFAULT", "100/hour"))
def update_me(
    request: Request,
    user_update: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return update_user(current_user.UserID, user_update, db)


@router.put("/me/password", response_model=BaseResponse)
@limiter.limit(os.getenv("RATE_LIMIT_LOGIN", "5/minute"))
def update_password(
    request: Request,
    password_update: UserPasswordUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return change_password(current_user.UserID, password_update, db)


@router.post("/forgot-password", response_model=BaseResponse)
@limiter.limit(os.getenv("RATE_LIMIT_LOGIN", "5/minute"))
def forgot_password_route(
    request: Request, body: ForgotPasswordRequest, db: Session = Depends(get_db)
):
    return forgot_password(body, db)


@router.post("/reset-password", response_model=BaseResponse)
@limiter.limit(os.getenv("RATE_LIMIT_LOGIN", "5/minute"))
def reset_password_route(
    request: Request, body: ResetPasswordRequest, db: Session = Depends(get_db)
):
    return reset_password(body, db)
