from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text
from app.core.database import Base


class Card(Base):
    __tablename__ = "Cards"

    CardKey = Column(Integer, primary_key=True, index=True)
    CardID = Column(String(80), unique=True, nullable=False)
    EncodedPath = Column(String(120), unique=True, nullable=False)
    # Plain reference: deleting the owner leaves its cards in place
    UserID = Column(String(64), nullable=False, index=True)
    Name = Column(String(100), nullable=False)
    Pronouns = Column(String(50), nullable=False)
    JobPosition = Column(String(100), nullable=False)
    MobileNumber = Column(String(20), nullable=False)
    Email = Column(String(100), unique=True, nullable=False)
    Website = Column(String(255), nullable=True)
    Address = Column(String(255), nullable=True)
    ProfileImage = Column(String(255), nullable=True)
    Description = Column(Text, nullable=True)
    SocialMedia = Column(JSON, nullable=False, default=list)
    BusinessCardLink = Column(String(255), nullable=False)
    TemporaryCardLink = Column(String(255), nullable=False)
    TemporaryCardExpiry = Column(DateTime(timezone=True), nullable=False)
    PaymentExpiry = Column(DateTime(timezone=True), nullable=False)
    PaymentConfirmed = Column(Boolean, nullable=False, default=False)
    CreatedAt = Column(DateTime(timezone=True), nullable=False, index=True)
