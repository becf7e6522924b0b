# backend/routes/reviews.py
from typing import List, NamedTuple, Optional
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session
from starlette.datastructures import FormData, UploadFile

from database import get_db
from utils.tokenJWT import get_current_user, get_current_user_id
from models.users import User
from utils.audit import write_log, client_ip
from utils.storage import PhotoStorage, get_photo_storage
from services import reviews as review_service
from services.reviews import UploadedPhoto
from schemas.review import LocationReviewsResponse, ReviewCreated, ReviewOut
from schemas.user import MessageResponse

router = APIRouter(prefix="/locations", tags=["Reviews"])


class ReviewForm(NamedTuple):
    description: Optional[str]
    criteria: Optional[str]
    keep_photos: Optional[str]
    photos: List[UploadedPhoto]


async def _read_photos(form: FormData) -> List[UploadedPhoto]:
    """Collect the photo0..photoN file fields in submission order, skipping empty ones."""
    photos = []
    for key, value in form.multi_items():
        if not key.startswith("photo") or not isinstance(value, UploadFile):
            continue
        try:
            data = await value.read()
        finally:
            await value.close()
        if data:
            photos.append(UploadedPhoto(filename=value.filename or "", data=data))
    return photos


def _form_text(form: FormData, key: str):
    value = form.get(key)
    return value if isinstance(value, str) else None


# Only the body is read on the event loop; handlers are sync and run in the threadpool
async def read_review_form(request: Request) -> ReviewForm:
    form = await request.form()
    return ReviewForm(
        description=_form_text(form, "description"),
        criteria=_form_text(form, "criteria"),
        keep_photos=_form_text(form, "keepPhotos"),
        photos=await _read_photos(form),
    )


# =========================
# LIST + SUMMARY (public)
# =========================
@router.get("/{location_id}/reviews", response_model=LocationReviewsResponse)
def list_reviews(location_id: int, db: Session = Depends(get_db)):
    review_service.get_active_location(db, location_id)
    return review_service.list_location_reviews(db, location_id)


@router.get("/{location_id}/reviews/{review_id}", response_model=ReviewOut)
def get_review(location_id: int, review_id: int, db: Session = Depends(get_db)):
    review = review_service.get_review(db, location_id, review_id)
    return review_service.review_to_out(review)


# =========================
# CREATE
# =========================
@router.post("/{location_id}/reviews", response_model=ReviewCreated, status_code=status.HTTP_201_CREATED)
def create_review(
    location_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: PhotoStorage = Depends(get_photo_storage),
    form: ReviewForm = Depends(read_review_form),
):
    review_service.get_active_location(db, location_id)
    user_id = current_user.id

    # Checked before validating the body so the client can switch to edit mode right away
    try:
        review_service.ensure_not_reviewed(db, location_id, user_id)
    except HTTPException:
        write_log(db, user_id=user_id, action="REVIEW_CREATE", resource="reviews", status="FAIL",
                  ip=client_ip(request), meta={"location_id": location_id, "reason": "already reviewed"})
        raise

    payload = review_service.parse_review_form(form.description, form.criteria)

    review = review_service.create_review(
        db, storage, location_id=location_id, user_id=user_id, payload=payload, photos=form.photos,
    )

    write_log(db, user_id=user_id, action="REVIEW_CREATE", resource="reviews", resource_id=review.id,
              ip=client_ip(request), meta={"location_id": location_id, "photos": len(form.photos)})
    return ReviewCreated(review_id=review.id)


# =========================
# UPDATE
# =========================
@router.put("/{location_id}/reviews/{review_id}", response_model=MessageResponse)
def update_review(
    location_id: int,
    review_id: int,
    request: Request,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    storage: PhotoStorage = Depends(get_photo_storage),
    form: ReviewForm = Depends(read_review_form),
):
    review = review_service.get_review(db, location_id, review_id)
    review_service.ensure_owner(review, user_id, action="edit")

    payload = review_service.parse_review_form(form.description, form.criteria)
    keep_photo_ids = review_service.parse_keep_photos(form.keep_photos)

    review_service.update_review(
        db, storage, review, payload=payload, keep_photo_ids=keep_photo_ids, photos=form.photos,
    )

    write_log(db, user_id=user_id, action="REVIEW_UPDATE", resource="reviews", resource_id=review_id,
              ip=client_ip(request), meta={"location_id": location_id, "new_photos": len(form.photos)})
    return {"message": "Review updated"}


# =========================
# DELETE
# =========================
@router.delete("/{location_id}/reviews/{review_id}", response_model=MessageResponse)
def delete_review(
    location_id: int,
    review_id: int,
    request: Request,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    storage: PhotoStorage = Depends(get_photo_storage),
):
    review = review_service.get_review(db, location_id, review_id)
    review_service.ensure_owner(review, user_id, action="delete")

    files_removed = review_service.delete_review(db, storage, review)

    write_log(db, user_id=user_id, action="REVIEW_DELETE", resource="reviews", resource_id=review_id,
              ip=client_ip(request), meta={"location_id": location_id, "files_removed": files_removed})
    return {"message": "Review deleted"}
