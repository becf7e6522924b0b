# backend/routes/admin.py
import logging
import math
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from utils.hashing import get_password_hash
from utils.tokenJWT import admin_required
from utils.audit import write_log, client_ip
from utils.storage import PhotoStorage, get_photo_storage
from services.reviews import photo_paths_for_user
import schemas.user as user_schemas

router = APIRouter(prefix="/admin/users", tags=["Admin"])
logger = logging.getLogger(__name__)


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user

def _email_taken(db: Session, email: str, exclude_id: Optional[int] = None) -> bool:
    query = db.query(User.id).filter(func.lower(User.email) == email.lower())
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    return query.first() is not None

def build_user_update(user_id: int, patch: user_schemas.AdminUserUpdate):
    """Map the supplied fields of a patch onto a parameterized UPDATE; returns None when nothing was supplied."""
    values = patch.model_dump(exclude_unset=True, exclude_none=True)
    if not values:
        return None
    if "password" in values:
        values["password_hash"] = get_password_hash(values.pop("password"))
    if "email" in values:
        values["email"] = values["email"].strip().lower()
    if "name" in values:
        values["name"] = values["name"].strip()
    values["updated_at"] = func.now()
    return update(User).where(User.id == user_id).values(**values)


# Retrieve a page of users, optionally filtered by name or email (Admin only)
@router.get("", response_model=user_schemas.PaginatedUsersResponse)
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None, description="Substring of name or email"),
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_required),
):
    query = db.query(User)

    if search:
        like = f"%{search}%"
        query = query.filter(or_(User.name.ilike(like), User.email.ilike(like)))

    total = query.count()
    users = (
        query.order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    total_pages = math.ceil(total / limit)

    return {
        "users": users,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


@router.get("/{user_id}", response_model=user_schemas.UserResponse)
def get_user(user_id: int, db: Session = Depends(get_db), current_user: User = Depends(admin_required)):
    return _get_user_or_404(db, user_id)


@router.post("", response_model=user_schemas.UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: user_schemas.AdminUserCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_required),
):
    email = payload.email.strip().lower()
    if _email_taken(db, email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already in use")

    user = User(
        name=payload.name.strip(),
        email=email,
        password_hash=get_password_hash(payload.password),
        is_admin=payload.is_admin,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    write_log(db, user_id=current_user.id, action="USER_CREATE", resource="users", resource_id=user.id,
              ip=client_ip(request), meta={"email": user.email, "is_admin": user.is_admin})
    return user


# Partial update (Admin only)
@router.put("/{user_id}", response_model=user_schemas.UserResponse)
def update_user(
    user_id: int,
    payload: user_schemas.AdminUserUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_required),
):
    user = _get_user_or_404(db, user_id)

    if payload.email is not None and _email_taken(db, payload.email.strip(), exclude_id=user_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already in use")

    stmt = build_user_update(user_id, payload)
    if stmt is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    db.execute(stmt)
    db.commit()
    db.refresh(user)

    write_log(db, user_id=current_user.id, action="USER_UPDATE", resource="users", resource_id=user_id,
              ip=client_ip(request), meta={"fields": sorted(payload.model_dump(exclude_unset=True, exclude_none=True))})
    return user


# Delete a user account (Admin only)
@router.delete("/{user_id}", response_model=user_schemas.DeletedUserResponse)
def delete_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_required),
    storage: PhotoStorage = Depends(get_photo_storage),
):
    # Prevent self-deletion
    if user_id == current_user.id:
        write_log(db, user_id=current_user.id, action="USER_DELETE", resource="users", resource_id=user_id, status="FAIL",
                  ip=client_ip(request), meta={"reason": "self-deletion"})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot delete your own account")

    user = _get_user_or_404(db, user_id)
    name = user.name

    # Reviews cascade with the user; their photo files are cleaned up after the commit
    photo_paths = photo_paths_for_user(db, user_id)

    db.delete(user)
    db.commit()

    storage.delete_many(photo_paths)
    logger.info("User %s deleted by admin %s (%d photo files)", user_id, current_user.id, len(photo_paths))

    write_log(db, user_id=current_user.id, action="USER_DELETE", resource="users", resource_id=user_id,
              ip=client_ip(request), meta={"name": name})
    return {"message": "User deleted", "id": user_id, "name": name}
