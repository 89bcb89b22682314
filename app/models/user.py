from sqlalchemy import Column, String, DateTime
from datetime import datetime, timezone
from app.core.database import Base


class User(Base):
    __tablename__ = "Users"

    UserID = Column(String(64), primary_key=True, index=True)
    FullName = Column(String(100), nullable=False)
    Email = Column(String(100), unique=True, nullable=False)
    MobileNo = Column(String(20), nullable=True)
    Password = Column(String(255), nullable=False)
    Type = Column(String(10), nullable=False, default="user")  # "admin" | "user"
    # Only populated while a password reset is in progress
    ResetPasswordOTP = Column(String(255), nullable=True)
    ResetPasswordOTPExpiry = Column(DateTime(timezone=True), nullable=True)
    CreatedAt = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
