# app/core/utils.py
import json
import logging
import os
import smtplib
from datetime import datetime, timezone
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Any, Optional, Type, TypeVar

from passlib.context import CryptContext
from pydantic import BaseModel, ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, CustomHTTPException, ValidationError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


def send_email(to_email: str, subject: str, body: str) -> None:
    smtp_server = os.getenv("SMTP_SERVER", "smtp.gmail.com")
    smtp_port = int(os.getenv("SMTP_PORT", 587))
    smtp_user = os.getenv("SMTP_USER")
    smtp_password = os.getenv("SMTP_PASSWORD")

    if not all([smtp_server, smtp_port, smtp_user, smtp_password]):
        raise CustomHTTPException(
            status_code=500,
            message="Email service not configured",
            details={"error": "Missing SMTP environment variables"},
        )

    msg = MIMEMultipart()
    msg["From"] = smtp_user
    msg["To"] = to_email
    msg["Subject"] = subject

    msg.attach(MIMEText(body, "plain"))

    try:
        with smtplib.SMTP(smtp_server, smtp_port) as server:
            server.starttls()
            server.login(smtp_user, smtp_password)
            server.sendmail(smtp_user, to_email, msg.as_string())
    except Exception as e:
        logger.error("Failed to send email to %s: %s", to_email, e)
        raise CustomHTTPException(
            status_code=500,
            message="Failed to send email",
            details={"error": str(e)},
        )


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything we store is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def check_unique_field(
    db: Session,
    model: Type[T],
    field_name: str,
    value: Any,
    exclude: Optional[tuple] = None,
) -> None:
    """Raise ConflictError when ``value`` is already stored in ``field_name``.

    ``exclude`` is an ``(id_field, id_value)`` pair naming the row being
    updated, so a record does not conflict with itself.
    """
    query = db.query(model).filter(getattr(model, field_name) == value)
    if exclude:
        id_field, id_value = exclude
        query = query.filter(getattr(model, id_field) != id_value)
    if query.first():
        raise ConflictError(
            message=f"{field_name} {value} already exists",
            details={"field": field_name},
        )


def parse_payload(model: Type[M], raw: Any) -> M:
    """Validate a JSON string or dict into ``model``.

    Multipart endpoints receive their fields as a JSON text part, so both the
    JSON syntax and the field rules are reported as ValidationError.
    """
    if isinstance(raw, (str, bytes)):
        text = raw.strip() if isinstance(raw, str) else raw.decode("utf-8").strip()
        try:
            raw = json.loads(text or "{}")
        except json.JSONDecodeError as e:
            raise ValidationError("Invalid JSON payload", details={"error": str(e)})
    if not isinstance(raw, dict):
        raise ValidationError("Payload must be a JSON object")
    try:
        return model.model_validate(raw)
    except PydanticValidationError as e:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "error": err["msg"]}
            for err in e.errors()
        ]
        raise ValidationError(
            f"Invalid {model.__name__} payload", details={"errors": errors}
        )
