# backend/routes/profile.py
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import func
from sqlalchemy.orm import Session

from database import get_db
from utils.hashing import get_password_hash, verify_password
from utils.tokenJWT import get_current_user
from utils.audit import write_log, client_ip
from models.users import User
from services import reviews as review_service
from schemas.review import UserReviewOut
import schemas.user as user_schemas

router = APIRouter(prefix="/profile", tags=["Profile"])


@router.get("", response_model=user_schemas.UserResponse)
def get_profile(current_user: User = Depends(get_current_user)):
    return current_user


# Regular users may only rename themselves; admins can also change email and password
@router.put("", response_model=user_schemas.UserResponse)
def update_profile(
    payload: user_schemas.ProfileUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    changes = {}

    if payload.name is not None:
        changes["name"] = payload.name.strip()

    if current_user.is_admin:
        if payload.email is not None and payload.email.lower() != current_user.email.lower():
            email = payload.email.strip().lower()
            taken = db.query(User).filter(func.lower(User.email) == email, User.id != current_user.id).first()
            if taken:
                raise HTTPException(status_code=400, detail="Email already in use")
            changes["email"] = email

        if payload.new_password is not None:
            if not payload.current_password:
                raise HTTPException(status_code=400, detail="Current password is required to change the password")
            if not verify_password(payload.current_password, current_user.password_hash):
                raise HTTPException(status_code=400, detail="Current password is incorrect")
            changes["password_hash"] = get_password_hash(payload.new_password)

    if not changes:
        raise HTTPException(status_code=400, detail="No fields to update")

    for key, value in changes.items():
        setattr(current_user, key, value)
    db.commit()
    db.refresh(current_user)

    write_log(db, user_id=current_user.id, action="PROFILE_UPDATE", resource="profile", resource_id=current_user.id,
              ip=client_ip(request), meta={"fields": sorted(changes)})
    return current_user


@router.get("/reviews", response_model=List[UserReviewOut])
def my_reviews(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return review_service.list_user_reviews(db, current_user.id)
