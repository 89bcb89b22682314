from fastapi import Depends, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session
from app.core.database import get_db
from app.models.user import User
from datetime import datetime, timedelta, timezone
from app.core.exceptions import CustomHTTPException
from app.core.responses import success_response
import os
import uuid

SECRET_KEY = os.getenv("SECRET_KEY")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", 7))

if not SECRET_KEY:
    raise ValueError("SECRET_KEY must be set in the .env file")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/users/login")


def create_access_token(data: dict):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def create_refresh_token(data: dict):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS)
    to_encode.update({"exp": expire, "jti": str(uuid.uuid4()), "refresh": True})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def issue_tokens(user: User) -> dict:
    claims = {"sub": user.UserID, "type": user.Type}
    return {
        "access_token": create_access_token(data=claims),
        "refresh_token": create_refresh_token(data=claims),
        "token_type": "bearer",
    }


def decode_token_subject(token: str):
    """Subject of a valid token, or None. Used where a failed decode is not an error."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    return payload.get("sub")


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)):
    credentials_exception = CustomHTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        message="Could not validate credentials",
        details={}
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id: str = payload.get("sub")
        if user_id is None or payload.get("refresh"):
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    user = db.query(User).filter(User.UserID == user_id).first()
    if user is None:
        raise credentials_exception

    return user


def get_current_admin(current_user: User = Depends(get_current_user)):
    if current_user.Type != "admin":
        raise CustomHTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            message="Admin privileges required",
            details={}
        )
    return current_user


def ensure_owner_or_admin(current_user: User, owner_id: str) -> None:
    if current_user.Type != "admin" and current_user.UserID != owner_id:
        raise CustomHTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            message="Not allowed to access another user's cards",
            details={}
        )


def refresh_token(refresh_token: str, db: Session):
    invalid_token = CustomHTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        message="Invalid or expired refresh token",
        details={}
    )
    try:
        payload = jwt.decode(refresh_token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise invalid_token

    user_id: str = payload.get("sub")
    if user_id is None or not payload.get("refresh"):
        raise invalid_token

    user = db.query(User).filter(User.UserID == user_id).first()
    if not user:
        raise invalid_token

    return success_response(
        message="Token refreshed successfully",
        data=issue_tokens(user),
    )
