import json
import re
from pydantic import BaseModel, ConfigDict, Field, constr, field_validator
from datetime import datetime
from typing import List, Optional

PHONE_PATTERN = re.compile(r"^\+\d{1,4}\d{6,14}$")  # +<country code><number>, no spaces
EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")
URL_PATTERN = re.compile(
    r"^(https?://)?[\w.-]+(\.[\w.-]+)+[\w\-._~:/?#\[\]@!$&'()*+,;=.]+$"
)


def _parse_social_media(v):
    # Multipart clients send the list as JSON text
    if isinstance(v, str):
        try:
            v = json.loads(v)
        except json.JSONDecodeError:
            raise ValueError("Invalid SocialMedia format")
    if v is not None and not isinstance(v, list):
        raise ValueError("SocialMedia must be a list of {platform, url} entries")
    return v


class SocialMediaEntry(BaseModel):
    platform: Optional[str] = None
    url: str

    @field_validator("url")
    @classmethod
    def validate_url(cls, v):
        if not URL_PATTERN.match(v):
            raise ValueError(f"Invalid social media URL: {v}")
        return v


class CardCreate(BaseModel):
    Name: constr(min_length=2, max_length=100)  # type: ignore
    Pronouns: constr(min_length=1, max_length=50)  # type: ignore
    JobPosition: constr(min_length=1, max_length=100)  # type: ignore
    MobileNumber: str
    Email: str
    Website: Optional[constr(max_length=255)] = None  # type: ignore
    Address: Optional[constr(max_length=255)] = None  # type: ignore
    Description: Optional[str] = None
    SocialMedia: List[SocialMediaEntry] = Field(default_factory=list)

    @field_validator("MobileNumber")
    @classmethod
    def validate_mobile_number(cls, v):
        if not PHONE_PATTERN.match(v):
            raise ValueError("Invalid mobile number format")
        return v

    @field_validator("Email")
    @classmethod
    def validate_email(cls, v):
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Invalid email format")
        return v

    @field_validator("SocialMedia", mode="before")
    @classmethod
    def parse_social_media(cls, v):
        return _parse_social_media(v) or []


class CardUpdate(BaseModel):
    Name: Optional[constr(min_length=2, max_length=100)] = None  # type: ignore
    Pronouns: Optional[constr(min_length=1, max_length=50)] = None  # type: ignore
    JobPosition: Optional[constr(min_length=1, max_length=100)] = None  # type: ignore
    MobileNumber: Optional[str] = None
    Email: Optional[str] = None
    Website: Optional[constr(max_length=255)] = None  # type: ignore
    Address: Optional[constr(max_length=255)] = None  # type: ignore
    Description: Optional[str] = None
    SocialMedia: Optional[List[SocialMediaEntry]] = None

    @field_validator("Name", "Pronouns", "JobPosition", "MobileNumber", "Email")
    @classmethod
    def reject_null(cls, v, info):
        # Only runs for fields the client sent; these columns cannot be cleared
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @field_validator("MobileNumber")
    @classmethod
    def validate_mobile_number(cls, v):
        if v is not None and not PHONE_PATTERN.match(v):
            raise ValueError("Invalid mobile number format")
        return v

    @field_validator("Email")
    @classmethod
    def validate_email(cls, v):
        if v is not None and not EMAIL_PATTERN.match(v):
            raise ValueError("Invalid email format")
        return v

    @field_validator("SocialMedia", mode="before")
    @classmethod
    def parse_social_media(cls, v):
        # An explicit null clears the list
        return _parse_social_media(v) or []


class CardPaymentUpdate(BaseModel):
    PaymentConfirmed: bool = True


class CardResponse(BaseModel):
    CardKey: int
    CardID: str
    EncodedPath: str
    UserID: str
    Name: str
    Pronouns: str
    JobPosition: str
    MobileNumber: str
    Email: str
    Website: Optional[str] = None
    Address: Optional[str] = None
    ProfileImage: Optional[str] = None
    Description: Optional[str] = None
    SocialMedia: List[SocialMediaEntry] = []
    BusinessCardLink: str
    TemporaryCardLink: str
    TemporaryCardExpiry: datetime
    PaymentExpiry: datetime
    PaymentConfirmed: bool
    CreatedAt: datetime
    model_config = ConfigDict(
        from_attributes=True,
        json_encoders={datetime: lambda v: v.isoformat()},
    )


class ImageUpload(BaseModel):
    """An uploaded profile image, read fully into memory by the route."""
    filename: Optional[str] = None
    content_type: Optional[str] = None
    content: bytes
