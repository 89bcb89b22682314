# app/routes/cards.py
import os
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

# Controllers
from app.controllers.card_controller import (
    create_card,
    delete_card,
    get_card_by_encoded_path,
    list_user_cards,
    resolve_card,
    update_card,
)

# Schemas
from app.schemas.card_schema import CardCreate, CardUpdate, ImageUpload

# Models
from app.models.user import User

# Core
from app.core.auth import ensure_owner_or_admin, get_current_user
from app.core.database import get_db
from app.core.rate_limiter import limiter
from app.core.responses import BaseResponse
from app.core.storage import LocalBlobStore, get_blob_store
from app.core.utils import parse_payload

router = APIRouter()
# Serves the stored `/uploads/<name>` references
uploads_router = APIRouter()

DATA_FIELD_DESCRIPTION = (
    "JSON object with the card fields: Name, Pronouns, JobPosition, MobileNumber, "
    "Email, Website, Address, Description, SocialMedia (list or JSON text)."
)


async def _read_image(upload: Optional[UploadFile]) -> Optional[ImageUpload]:
    if upload is None or not upload.filename:
        return None
    return ImageUpload(
        filename=upload.filename,
        content_type=upload.content_type,
        content=await upload.read(),
    )


def _owner_filter(current_user: User) -> Optional[str]:
    # Admins act on any card; everyone else only on their own
    return None if current_user.Type == "admin" else current_user.UserID


@router.post("", response_model=BaseResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(os.getenv("RATE_LIMIT_USER_DEFAULT", "100/hour"))
async def create_card_route(
    request: Request,
    data: str = Form(..., description=DATA_FIELD_DESCRIPTION),
    profile_image: Optional[UploadFile] = File(None, alias="profileImage"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    blobs: LocalBlobStore = Depends(get_blob_store),
):
    card = parse_payload(CardCreate, data)
    image = await _read_image(profile_image)
    return create_card(current_user.UserID, card, db, blobs, image)


@router.get("/user/{user_id}", response_model=BaseResponse)
@limiter.limit(os.getenv("RATE_LIMIT_USER_DEFAULT", "100/hour"))
def list_user_cards_route(
    request: Request,
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_owner_or_admin(current_user, user_id)
    return list_user_cards(user_id, db)


@router.get("/encoded/{encoded_path}", response_model=BaseResponse)
@limiter.limit(os.getenv("RATE_LIMIT_PUBLIC", "1000/hour"))
def get_card_by_encoded_path_route(
    request: Request, encoded_path: str, db: Session = Depends(get_db)
):
    return get_card_by_encoded_path(encoded_path, db)


@router.get("/image/{filename}")
@limiter.limit(os.getenv("RATE_LIMIT_PUBLIC", "1000/hour"))
def get_image_route(
    request: Request,
    filename: str,
    blobs: LocalBlobStore = Depends(get_blob_store),
):
    return FileResponse(blobs.serve(filename))


@uploads_router.get("/{filename}")
@limiter.limit(os.getenv("RATE_LIMIT_PUBLIC", "1000/hour"))
def get_upload_route(
    request: Request,
    filename: str,
    blobs: LocalBlobStore = Depends(get_blob_store),
):
    return FileResponse(blobs.serve(filename))


@router.get("/{token}", response_model=BaseResponse)
@limiter.limit(os.getenv("RATE_LIMIT_PUBLIC", "1000/hour"))
def resolve_card_route(request: Request, token: str, db: Session = Depends(get_db)):
    return resolve_card(token, db)


@router.put("/{key}", response_model=BaseResponse)
@limiter.limit(os.getenv("RATE_LIMIT_USER_DEFAULT", "100/hour"))
async def update_card_route(
    request: Request,
    key: str,
    data: str = Form("{}", description=DATA_FIELD_DESCRIPTION),
    profile_image: Optional[UploadFile] = File(None, alias="profileImage"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    blobs: LocalBlobStore = Depends(get_blob_store),
):
    card_update = parse_payload(CardUpdate, data)
    image = await _read_image(profile_image)
    return update_card(
        key, card_update, db, blobs, image, owner_id=_owner_filter(current_user)
    )


@router.delete("/{key}", response_model=BaseResponse)
@limiter.limit(os.getenv("RATE_LIMIT_USER_DEFAULT", "100/hour"))
def delete_card_route(
    request: Request,
    key: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    blobs: LocalBlobStore = Depends(get_blob_store),
):
    return delete_card(key, db, blobs, owner_id=_owner_filter(current_user))
