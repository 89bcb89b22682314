"""
Card lifecycle: create, resolve, update, delete and the unpaid-card sweep.

A card starts unpaid. Admins confirm payment; cards still unpaid two days
after creation are purged by :func:`sweep_expired_unpaid_cards`, which an
external scheduler runs periodically. The stored ``TemporaryCardExpiry`` and
``PaymentExpiry`` timestamps are informational only.
"""
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.encoding import decode_id, encode_id, next_sequential_id
from app.core.exceptions import (
    ConflictError,
    DatabaseError,
    DecodeError,
    NotFound,
    ValidationError,
)
from app.core.responses import paginated_response, success_response
from app.core.storage import LocalBlobStore, build_blob_name, name_from_reference
from app.core.utils import as_utc, check_unique_field
from app.models.card import Card
from app.schemas.card_schema import (
    CardCreate,
    CardPaymentUpdate,
    CardResponse,
    CardUpdate,
    ImageUpload,
)

logger = logging.getLogger(__name__)

CARD_SITE_HOST = os.getenv("CARD_SITE_HOST", "QRbook.ca")
CARD_ID_MAX_ATTEMPTS = int(os.getenv("CARD_ID_MAX_ATTEMPTS", 5))

TEMPORARY_CARD_TTL = timedelta(days=2)
PAYMENT_TTL = timedelta(days=4)
UNPAID_CARD_MAX_AGE = timedelta(days=2)

ALLOWED_IMAGE_CONTENT_TYPES = {"image/jpeg", "image/png", "image/jpg"}


def _card_data(card: Card) -> dict:
    return CardResponse.model_validate(card).model_dump()


def _store_image(blobs: LocalBlobStore, image: ImageUpload) -> str:
    if image.content_type not in ALLOWED_IMAGE_CONTENT_TYPES:
        raise ValidationError(
            "Invalid file type, only JPEG, PNG, and JPG are allowed",
            details={"content_type": image.content_type},
        )
    return blobs.store(build_blob_name(image.filename), image.content)


def _discard_blob(blobs: LocalBlobStore, reference: Optional[str]) -> None:
    """Best-effort removal; a missing or unreadable blob never fails the caller."""
    name = name_from_reference(reference)
    if not name:
        return
    try:
        blobs.delete(name)
    except (OSError, NotFound) as e:
        logger.warning("Could not delete image %s: %s", reference, e)


def _get_card_or_404(db: Session, key, owner_id: Optional[str] = None) -> Card:
    """Look a card up by CardID, or by the numeric internal CardKey."""
    key = str(key)
    card = db.query(Card).filter(Card.CardID == key).first()
    if card is None and key.isdigit():
        card = db.query(Card).filter(Card.CardKey == int(key)).first()
    if card is None or (owner_id is not None and card.UserID != owner_id):
        raise NotFound("Card")
    return card


def _next_free_card_id(db: Session, user_id: str, sequence: int):
    card_id = next_sequential_id(user_id, sequence)
    while db.query(Card.CardKey).filter(Card.CardID == card_id).first() is not None:
        sequence += 1
        card_id = next_sequential_id(user_id, sequence)
    return card_id, sequence


def create_card(
    user_id: str,
    card: CardCreate,
    db: Session,
    blobs: LocalBlobStore,
    image: Optional[ImageUpload] = None,
):
    check_unique_field(db, Card, "Email", card.Email)

    profile_image = _store_image(blobs, image) if image else None
    try:
        sequence = db.query(Card).filter(Card.UserID == user_id).count()
        for _ in range(CARD_ID_MAX_ATTEMPTS):
            card_id, sequence = _next_free_card_id(db, user_id, sequence)
            encoded_path = encode_id(card_id)
            now = datetime.now(timezone.utc)

            new_card = Card(
                CardID=card_id,
                EncodedPath=encoded_path,
                UserID=user_id,
                ProfileImage=profile_image,
                BusinessCardLink=f"https://{CARD_SITE_HOST}/{encoded_path}",
                TemporaryCardLink=f"https://{CARD_SITE_HOST}/temporary/{encoded_path}",
                TemporaryCardExpiry=now + TEMPORARY_CARD_TTL,
                PaymentExpiry=now + PAYMENT_TTL,
                PaymentConfirmed=False,
                CreatedAt=now,
                **card.model_dump(),
            )
            db.add(new_card)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                # A concurrent create took the email or this sequence number
                check_unique_field(db, Card, "Email", card.Email)
                logger.info("Card id %s taken concurrently, retrying", card_id)
                sequence += 1
                continue
            except SQLAlchemyError as e:
                db.rollback()
                raise DatabaseError(f"Database error: {str(e)}")

            db.refresh(new_card)
            logger.info("Card %s created for user %s", card_id, user_id)
            return success_response(
                message="Card created successfully",
                data=_card_data(new_card),
            )

        raise ConflictError(
            "Could not allocate a card id, please retry",
            details={"user_id": user_id},
        )
    except Exception:
        _discard_blob(blobs, profile_image)
        raise


def find_card(db: Session, token: str) -> Optional[Card]:
    """Resolve a card from any of the addressing schemes links have used.

    Tried in order:
      1. ``token`` is an encoded id: decode it (dropping one leading ``/``)
         and match ``CardID``.
      2. ``token`` equals a stored ``EncodedPath``.
      3. ``token`` is a raw ``CardID``.
    """
    candidates = []
    try:
        decoded = decode_id(token)
    except DecodeError:
        logger.debug("Token %s is not an encoded id, trying stored paths", token)
    else:
        if decoded.startswith("/"):
            decoded = decoded[1:]
        if decoded.isprintable():
            candidates.append((Card.CardID, decoded))
    candidates.append((Card.EncodedPath, token))
    candidates.append((Card.CardID, token))

    for column, value in candidates:
        card = db.query(Card).filter(column == value).first()
        if card is not None:
            return card
    return None


def resolve_card(token: str, db: Session):
    card = find_card(db, token)
    if card is None:
        raise NotFound("Card")
    return success_response(message="Card retrieved successfully", data=_card_data(card))


def get_card_by_id(card_id: str, db: Session):
    card = db.query(Card).filter(Card.CardID == card_id).first()
    if card is None:
        raise NotFound("Card")
    return success_response(message="Card retrieved successfully", data=_card_data(card))


def get_card_by_encoded_path(encoded_path: str, db: Session):
    card = db.query(Card).filter(Card.EncodedPath == encoded_path).first()
    if card is None:
        raise NotFound("Card")
    return success_response(message="Card retrieved successfully", data=_card_data(card))


def list_cards(db: Session, page: int = 1, per_page: int = 10):
    query = db.query(Card)
    total_items = query.count()
    cards = (
        query.order_by(desc(Card.CreatedAt), desc(Card.CardKey))
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return paginated_response(
        message="All cards retrieved successfully",
        items=[_card_data(c) for c in cards],
        page=page,
        per_page=per_page,
        total_items=total_items,
    )


def list_user_cards(user_id: str, db: Session):
    cards = db.query(Card).filter(Card.UserID == user_id).order_by(Card.CardKey).all()
    if not cards:
        raise NotFound(f"Cards for user {user_id}")
    return success_response(
        message=f"Cards retrieved successfully for user {user_id}",
        data={"items": [_card_data(c) for c in cards]},
    )


def update_card(
    key,
    card_update: CardUpdate,
    db: Session,
    blobs: LocalBlobStore,
    image: Optional[ImageUpload] = None,
    owner_id: Optional[str] = None,
):
    card = _get_card_or_404(db, key, owner_id)

    update_data = card_update.model_dump(exclude_unset=True)
    if "Email" in update_data and update_data["Email"] != card.Email:
        check_unique_field(
            db, Card, "Email", update_data["Email"], exclude=("CardKey", card.CardKey)
        )

    old_image = card.ProfileImage
    new_image = _store_image(blobs, image) if image else None
    if new_image:
        update_data["ProfileImage"] = new_image

    for field, value in update_data.items():
        setattr(card, field, value)

    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        _discard_blob(blobs, new_image)
        raise ConflictError("Card update violates a unique field", details={"error": str(e.orig)})
    except SQLAlchemyError as e:
        db.rollback()
        _discard_blob(blobs, new_image)
        raise DatabaseError(f"Database error: {str(e)}")

    db.refresh(card)
    if new_image and old_image and old_image != new_image:
        _discard_blob(blobs, old_image)
    logger.info("Card %s updated (%s)", card.CardID, ", ".join(sorted(update_data)) or "no changes")
    return success_response(message="Card updated successfully", data=_card_data(card))


def confirm_payment(key, payment: CardPaymentUpdate, db: Session):
    card = _get_card_or_404(db, key)
    card.PaymentConfirmed = payment.PaymentConfirmed
    try:
        db.commit()
        db.refresh(card)
    except SQLAlchemyError as e:
        db.rollback()
        raise DatabaseError(f"Database error: {str(e)}")

    logger.info("Card %s payment confirmed=%s", card.CardID, card.PaymentConfirmed)
    return success_response(
        message="Card payment status updated",
        data=_card_data(card),
    )


def delete_card(key, db: Session, blobs: LocalBlobStore, owner_id: Optional[str] = None):
    card = _get_card_or_404(db, key, owner_id)
    data = _card_data(card)
    image = card.ProfileImage

    try:
        db.delete(card)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise DatabaseError(f"Database error: {str(e)}")

    _discard_blob(blobs, image)
    logger.info("Card %s deleted", data["CardID"])
    return success_response(message="Card deleted successfully", data=data)


def find_expired_unpaid_cards(db: Session, now: Optional[datetime] = None) -> List[Card]:
    cutoff = as_utc(now or datetime.now(timezone.utc)) - UNPAID_CARD_MAX_AGE
    return (
        db.query(Card)
        .filter(Card.PaymentConfirmed.is_(False), Card.CreatedAt < cutoff)
        .all()
    )


def sweep_expired_unpaid_cards(
    db: Session, blobs: LocalBlobStore, now: Optional[datetime] = None
) -> int:
    """Delete unpaid cards older than two days and return how many went.

    Failures are logged, never raised: the scheduler that triggers the sweep
    must keep running.
    """
    removed = 0
    try:
        for card in find_expired_unpaid_cards(db, now):
            image = card.ProfileImage
            db.delete(card)
            db.commit()
            # Record first; a failed commit keeps the image its card still references
            _discard_blob(blobs, image)
            removed += 1
    except Exception:
        db.rollback()
        logger.exception("Error deleting expired unpaid cards")

    logger.info("Deleted %d expired unpaid cards.", removed)
    return removed
