# app/routes/admins.py
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session
from app.core.rate_limiter import limiter

# Controllers
from app.controllers.admin_controller import (
    bootstrap_admin,
    create_admin,
    delete_admin,
    get_all_admins,
    list_admins,
    update_admin,
)
from app.controllers.card_controller import (
    confirm_payment,
    list_cards,
    sweep_expired_unpaid_cards,
)
from app.controllers.user_controller import (
    delete_user,
    get_user,
    list_users,
    update_user,
)

# Schemas
from app.schemas.card_schema import CardPaymentUpdate
from app.schemas.user_schema import AdminCreate, UserUpdate

# Core
from app.core.auth import get_current_admin
from app.core.database import get_db
from app.core.responses import BaseResponse, PaginatedResponse, success_response
from app.core.storage import LocalBlobStore, get_blob_store

# Models
from app.models.user import User
import os

router = APIRouter()


@router.post("/bootstrap", response_model=BaseResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(os.getenv("RATE_LIMIT_ADMIN_CRITICAL", "10/minute"))
def bootstrap(request: Request, admin: AdminCreate, db: Session = Depends(get_db)):
    return bootstrap_admin(admin, db)


@router.post("", response_model=BaseResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(os.getenv("RATE_LIMIT_ADMIN_CRITICAL", "10/minute"))
def register(
    request: Request,
    admin: AdminCreate,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return create_admin(admin, db)


@router.get("", response_model=PaginatedResponse)
@limiter.limit(os.getenv("RATE_LIMIT_USER_DEFAULT", "100/hour"))
def list_admins_route(
    request: Request,
    page: int = Query(1, ge=1),
    per_page: int = Query(5, ge=1, le=100),
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return list_admins(db, page, per_page)


@router.get("/all", response_model=BaseResponse)
@limiter.limit(os.getenv("RATE_LIMIT_USER_DEFAULT", "100/hour"))
def get_all_admins_route(
    request: Request,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return get_all_admins(db)


@router.get("/users", response_model=PaginatedResponse)
@limiter.limit(os.getenv("RATE_LIMIT_USER_DEFAULT", "100/hour"))
def list_users_route(
    request: Request,
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return list_users(db, page, per_page)


@router.get("/users/{user_id}", response_model=BaseResponse)
@limiter.limit(os.getenv("RATE_LIMIT_USER_DEFAULT", "100/hour"))
def get_user_route(
    request: Request,
    user_id: str,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return get_user(user_id, db)


@router.put("/users/{user_id}", response_model=BaseResponse)
@limiter.limit(os.getenv("RATE_LIMIT_ADMIN_CRITICAL", "10/minute"))
def update_user_route(
    request: Request,
    user_id: str,
    user_update: UserUpdate,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return update_user(user_id, user_update, db)


@router.delete("/users/{user_id}", response_model=BaseResponse)
@limiter.limit(os.getenv("RATE_LIMIT_ADMIN_CRITICAL", "10/minute"))
def delete_user_route(
    request: Request,
    user_id: str,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return delete_user(user_id, db)


@router.get("/cards", response_model=PaginatedResponse)
@limiter.limit(os.getenv("RATE_LIMIT_USER_DEFAULT", "100/hour"))
def list_cards_route(
    request: Request,
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return list_cards(db, page, per_page)


@router.patch("/cards/{key}/payment", response_model=BaseResponse)
@limiter.limit(os.getenv("RATE_LIMIT_ADMIN_CRITICAL", "10/minute"))
def confirm_payment_route(
    request: Request,
    key: str,
    payment: CardPaymentUpdate,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return confirm_payment(key, payment, db)


@router.post("/cards/sweep", response_model=BaseResponse)
@limiter.limit(os.getenv("RATE_LIMIT_ADMIN_CRITICAL", "10/minute"))
def sweep_cards_route(
    request: Request,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
    blobs: LocalBlobStore = Depends(get_blob_store),
):
    removed = sweep_expired_unpaid_cards(db, blobs)
    return success_response(
        message=f"Deleted {removed} expired unpaid cards",
        data={"deleted": removed},
    )


@router.put("/{user_id}", response_model=BaseResponse)
@limiter.limit(os.getenv("RATE_LIMIT_ADMIN_CRITICAL", "10/minute"))
def update_admin_route(
    request: Request,
    user_id: str,
    admin_update: UserUpdate,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return update_admin(user_id, admin_update, db)


@router.delete("/{user_id}", response_model=BaseResponse)
@limiter.limit(os.getenv("RATE_LIMIT_ADMIN_CRITICAL", "10/minute"))
def delete_admin_route(
    request: Request,
    user_id: str,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return delete_admin(user_id, db)
