import logging
import os
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.auth import issue_tokens
from app.core.exceptions import (
    ConflictError,
    CustomHTTPException,
    DatabaseError,
    NotFound,
    ValidationError,
)
from app.core.responses import paginated_response, success_response
from app.core.utils import (
    as_utc,
    check_unique_field,
    hash_password,
    send_email,
    verify_password,
)
from app.models.user import User
from app.schemas.user_schema import (
    ForgotPasswordRequest,
    ResetPasswordRequest,
    UserCreate,
    UserLogin,
    UserPasswordUpdate,
    UserResponseData,
    UserUpdate,
)

logger = logging.getLogger(__name__)

OTP_EXPIRE_MINUTES = int(os.getenv("OTP_EXPIRE_MINUTES", 10))
USER_ID_BASE = 101


def user_data(user: User) -> dict:
    return UserResponseData.model_validate(user).model_dump()


def get_user_or_404(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.UserID == user_id).first()
    if not user:
        raise NotFound("User")
    return user


def generate_user_id(db: Session) -> str:
    sequence = USER_ID_BASE + db.query(User).count()
    while db.query(User.UserID).filter(User.UserID == f"User{sequence}").first():
        sequence += 1
    return f"User{sequence}"


def save_new_user(db: Session, new_user: User, message: str):
    try:
        db.add(new_user)
        db.commit()
        db.refresh(new_user)
    except IntegrityError as e:
        db.rollback()
        raise ConflictError("User already exists", details={"error": str(e.orig)})
    except SQLAlchemyError as e:
        db.rollback()
        raise DatabaseError(f"Database error: {str(e)}")

    logger.info("%s account %s created", new_user.Type, new_user.UserID)
    return success_response(
        message=message,
        data=user_data(new_user),
        status_code=status.HTTP_201_CREATED,
    )


def register_user(user: UserCreate, db: Session):
    check_unique_field(db, User, "Email", user.Email)

    new_user = User(
        UserID=generate_user_id(db),
        FullName=user.FullName,
        Email=user.Email,
        MobileNo=user.MobileNo,
        Password=hash_password(user.Password),
        Type="user",
    )
    return save_new_user(db, new_user, "User registered successfully")


def login_user(credentials: UserLogin, db: Session):
    user = db.query(User).filter(User.Email == credentials.Email).first()
    if not user:
        raise NotFound("User")

    if not verify_password(credentials.Password, user.Password):
        raise CustomHTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, message="Invalid credentials"
        )

    return success_response(
        message="Login successful",
        data={**user_data(user), **issue_tokens(user)},
    )


def get_user(user_id: str, db: Session):
    user = get_user_or_404(db, user_id)
    return success_response(message="User retrieved successfully", data=user_data(user))


def list_users(db: Session, page: int = 1, per_page: int = 10, user_type: Optional[str] = None):
    query = db.query(User)
    if user_type is not None:
        query = query.filter(User.Type == user_type)

    total_items = query.count()
    users = (
        query.order_by(User.CreatedAt.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return paginated_response(
        message="Users retrieved successfully",
        items=[user_data(u) for u in users],
        page=page,
        per_page=per_page,
        total_items=total_items,
    )


def apply_user_update(user: User, user_update: UserUpdate, db: Session, message: str):
    update_data = user_update.model_dump(exclude_unset=True, exclude_none=True)
    if "Email" in update_data and update_data["Email"] != user.Email:
        check_unique_field(
            db, User, "Email", update_data["Email"], exclude=("UserID", user.UserID)
        )

    for key, value in update_data.items():
        setattr(user, key, value)

    try:
        db.commit()
        db.refresh(user)
    except IntegrityError as e:
        db.rollback()
        raise ConflictError("Email already exists", details={"error": str(e.orig)})
    except SQLAlchemyError as e:
        db.rollback()
        raise DatabaseError(f"Database error: {str(e)}")

    return success_response(message=message, data=user_data(user))


def update_user(user_id: str, user_update: UserUpdate, db: Session):
    user = get_user_or_404(db, user_id)
    return apply_user_update(user, user_update, db, "Profile updated successfully")


def delete_user(user_id: str, db: Session):
    user = get_user_or_404(db, user_id)
    try:
        db.delete(user)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise DatabaseError(f"Database error: {str(e)}")

    # No cascade: the user's cards keep their UserID
    logger.info("User %s deleted", user_id)
    return success_response(message="User deleted", data={"UserID": user_id})


def change_password(user_id: str, password_update: UserPasswordUpdate, db: Session):
    user = get_user_or_404(db, user_id)

    if not verify_password(password_update.CurrentPassword, user.Password):
        raise CustomHTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            message="Current password is incorrect",
        )

    user.Password = hash_password(password_update.NewPassword)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise DatabaseError(f"Database error: {str(e)}")

    return success_response(
        message="Password updated successfully", data={"UserID": user.UserID}
    )


def forgot_password(request: ForgotPasswordRequest, db: Session):
    user = db.query(User).filter(User.Email == request.Email).first()
    if not user:
        raise NotFound("User")

    otp = f"{secrets.randbelow(10**6):06d}"
    user.ResetPasswordOTP = hash_password(otp)
    user.ResetPasswordOTPExpiry = datetime.now(timezone.utc) + timedelta(
        minutes=OTP_EXPIRE_MINUTES
    )
    db.commit()

    try:
        send_email(
            to_email=user.Email,
            subject="QRbook password reset code",
            body=(
                f"Hello {user.FullName},\n\n"
                f"Your password reset code is {otp}. "
                f"It expires in {OTP_EXPIRE_MINUTES} minutes.\n\n"
                "If you did not request a reset, you can ignore this email."
            ),
        )
    except CustomHTTPException:
        user.ResetPasswordOTP = None
        user.ResetPasswordOTPExpiry = None
        db.commit()
        raise

    logger.info("Password reset OTP issued for %s", user.UserID)
    return success_response(
        message="OTP sent to your email",
        data={"expires_in_minutes": OTP_EXPIRE_MINUTES},
    )


def reset_password(request: ResetPasswordRequest, db: Session):
    user = db.query(User).filter(User.Email == request.Email).first()
    if not user:
        raise NotFound("User")

    if not user.ResetPasswordOTP or not user.ResetPasswordOTPExpiry:
        raise ValidationError("No active password reset request")
    if as_utc(user.ResetPasswordOTPExpiry) < datetime.now(timezone.utc):
        raise ValidationError("OTP has expired")
    if not verify_password(request.OTP, user.ResetPasswordOTP):
        raise ValidationError("Invalid OTP")

    user.Password = hash_password(request.NewPassword)
    user.ResetPasswordOTP = None
    user.ResetPasswordOTPExpiry = None
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise DatabaseError(f"Database error: {str(e)}")

    logger.info("Password reset completed for %s", user.UserID)
    return success_response(message="Password reset successfully", data={"UserID": user.UserID})
