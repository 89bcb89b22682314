from pydantic import BaseModel, EmailStr, constr, ConfigDict
from datetime import datetime
from typing import Optional


class UserCreate(BaseModel):
    FullName: constr(min_length=1, max_length=100)  # type: ignore
    Email: EmailStr
    MobileNo: Optional[constr(max_length=20)] = None  # type: ignore
    Password: constr(min_length=6, max_length=72)  # type: ignore


# Admin accounts carry the same fields; only the stored Type differs
AdminCreate = UserCreate


class UserUpdate(BaseModel):
    FullName: Optional[constr(min_length=1, max_length=100)] = None  # type: ignore
    Email: Optional[EmailStr] = None
    MobileNo: Optional[constr(max_length=20)] = None  # type: ignore
    model_config = ConfigDict(from_attributes=True)


# Dedicated schema for user password update
class UserPasswordUpdate(BaseModel):
    CurrentPassword: constr(min_length=1, max_length=72)  # type: ignore
    NewPassword: constr(min_length=6, max_length=72)  # type: ignore


class UserLogin(BaseModel):
    Email: EmailStr
    Password: constr(min_length=1, max_length=72)  # type: ignore


class ForgotPasswordRequest(BaseModel):
    Email: EmailStr


class ResetPasswordRequest(BaseModel):
    Email: EmailStr
    OTP: constr(pattern=r"^\d{6}$")  # type: ignore
    NewPassword: constr(min_length=6, max_length=72)  # type: ignore


class UserResponseData(BaseModel):
    UserID: str
    FullName: str
    Email: str
    MobileNo: Optional[str] = None
    Type: str
    CreatedAt: Optional[datetime] = None

    model_config = ConfigDict(
        from_attributes=True,
        json_encoders={
            datetime: lambda v: v.isoformat() if v else None,
        },
    )
