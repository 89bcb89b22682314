import uuid

from fastapi import status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.controllers.user_controller import (
    user_data,
    apply_user_update,
    list_users,
    save_new_user,
)
from app.core.exceptions import CustomHTTPException, DatabaseError, NotFound
from app.core.responses import success_response
from app.core.utils import check_unique_field, hash_password
from app.models.user import User
from app.schemas.user_schema import AdminCreate, UserUpdate


def _get_admin_or_404(db: Session, user_id: str) -> User:
    admin = db.query(User).filter(User.UserID == user_id, User.Type == "admin").first()
    if not admin:
        raise NotFound("Admin")
    return admin


def create_admin(admin: AdminCreate, db: Session):
    check_unique_field(db, User, "Email", admin.Email)

    new_admin = User(
        UserID=uuid.uuid4().hex[:24],
        FullName=admin.FullName,
        Email=admin.Email,
        MobileNo=admin.MobileNo,
        Password=hash_password(admin.Password),
        Type="admin",
    )
    return save_new_user(db, new_admin, "Admin created successfully")


def bootstrap_admin(admin: AdminCreate, db: Session):
    if db.query(User).filter(User.Type == "admin").count() > 0:
        raise CustomHTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            message="Admin bootstrap only allowed when no admins exist",
        )
    return create_admin(admin, db)


def list_admins(db: Session, page: int = 1, per_page: int = 5):
    return list_users(db, page, per_page, user_type="admin")


def get_all_admins(db: Session):
    admins = db.query(User).filter(User.Type == "admin").order_by(User.CreatedAt.desc()).all()
    return success_response(
        message="Admins retrieved successfully",
        data={"items": [user_data(a) for a in admins]},
    )


def update_admin(user_id: str, admin_update: UserUpdate, db: Session):
    admin = _get_admin_or_404(db, user_id)
    return apply_user_update(admin, admin_update, db, "Admin updated successfully")


def delete_admin(user_id: str, db: Session):
    admin = _get_admin_or_404(db, user_id)
    try:
        db.delete(admin)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise DatabaseError(f"Database error: {str(e)}")

    return success_response(message="Admin deleted successfully", data={"UserID": user_id})
