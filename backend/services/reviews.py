# backend/services/reviews.py
"""Review transaction engine.

A review, its criteria and its photos are written as one unit: photo files are
stored first, then the rows go in a single transaction. If the transaction
fails the files written for it are removed again. Files that a committed
change makes obsolete are deleted after the commit, best-effort.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple

from fastapi import HTTPException, status
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from models.location import Location
from models.review import Review, ReviewCriterion, ReviewPhoto
from schemas.review import (
    MAX_PHOTOS, CriterionAverage, CriterionOut, PhotoOut, ReviewOut, ReviewPayload,
    ReviewSummary, UserReviewOut,
)
from utils.errors import internal_error, validation_exception
from utils.storage import ALLOWED_EXTENSIONS, PhotoStorage, file_extension

logger = logging.getLogger(__name__)

CONFLICT_MESSAGE = "You have already reviewed this location. Edit your existing review instead."


class UploadedPhoto(NamedTuple):
    filename: str
    data: bytes


# ---- INPUT PARSING ----

def _field_error(field: str, msg: str, err_type: str) -> dict:
    return {"loc": (field,), "msg": msg, "type": err_type}


def parse_review_form(description: Optional[str], criteria_raw: Optional[str]) -> ReviewPayload:
    """Build a ReviewPayload from the multipart text fields; raises 400 with field details."""
    try:
        criteria = json.loads(criteria_raw) if criteria_raw else []
    except (TypeError, ValueError):
        raise validation_exception([_field_error("criteria", "Criteria must be a JSON array", "json_invalid")])

    try:
        return ReviewPayload(description=description or "", criteria=criteria)
    except ValidationError as e:
        raise validation_exception(e.errors())


def parse_keep_photos(raw: Optional[str]) -> List[int]:
    if not raw:
        return []
    try:
        ids = json.loads(raw)
    except (TypeError, ValueError):
        ids = None
    if not isinstance(ids, list) or not all(isinstance(i, int) and not isinstance(i, bool) for i in ids):
        raise validation_exception([_field_error("keepPhotos", "keepPhotos must be a JSON array of photo ids", "list_type")])
    return ids


def validate_photos(photos: Sequence[UploadedPhoto], already_stored: int = 0):
    errors = []
    if already_stored + len(photos) > MAX_PHOTOS:
        errors.append(_field_error("photos", f"A review can have at most {MAX_PHOTOS} photos", "too_long"))
    for index, photo in enumerate(photos):
        if file_extension(photo.filename) not in ALLOWED_EXTENSIONS:
            errors.append(_field_error(f"photo{index}", "Unsupported image type", "value_error"))
    if errors:
        raise validation_exception(errors)


# ---- LOOKUPS & CHECKS ----

def get_active_location(db: Session, location_id: int) -> Location:
    location = db.query(Location).filter(Location.id == location_id, Location.is_active == True).first()  # noqa: E712
    if not location:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Location not found")
    return location


def ensure_not_reviewed(db: Session, location_id: int, user_id: int):
    existing = db.query(Review.id).filter(Review.location_id == location_id, Review.user_id == user_id).first()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=CONFLICT_MESSAGE)


def get_review(db: Session, location_id: int, review_id: int) -> Review:
    review = (
        db.query(Review)
        .options(joinedload(Review.user), selectinload(Review.criteria), selectinload(Review.photos))
        .filter(Review.id == review_id, Review.location_id == location_id)
        .first()
    )
    if not review:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
    return review


def ensure_owner(review: Review, user_id: int, action: str = "modify"):
    if review.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"You can only {action} your own reviews")


# ---- WRITES ----

def _store_photos(storage: PhotoStorage, location_id: int, user_id: int, photos: Sequence[UploadedPhoto], written: List[str]):
    # Paths are appended as they are written so the caller can clean up after a partial failure
    for index, photo in enumerate(photos):
        written.append(storage.save_review_photo(
            location_id=location_id, user_id=user_id, index=index,
            filename=photo.filename, data=photo.data,
        ))


def _build_criteria(payload: ReviewPayload) -> List[ReviewCriterion]:
    return [ReviewCriterion(criterion_name=c.name.value, rating=c.rating) for c in payload.criteria]


def _abort(db: Session, storage: PhotoStorage, written: List[str]):
    db.rollback()
    if written:
        storage.delete_many(written)


def create_review(
    db: Session,
    storage: PhotoStorage,
    *,
    location_id: int,
    user_id: int,
    payload: ReviewPayload,
    photos: Sequence[UploadedPhoto] = (),
) -> Review:
    validate_photos(photos)

    written: List[str] = []
    try:
        _store_photos(storage, location_id, user_id, photos, written)

        review = Review(
            location_id=location_id,
            user_id=user_id,
            description=payload.description,
            criteria=_build_criteria(payload),
            photos=[ReviewPhoto(photo_path=path) for path in written],
        )
        db.add(review)
        db.commit()
    except IntegrityError:
        _abort(db, storage, written)
        # A concurrent submission for the same (location, user) won the race
        ensure_not_reviewed(db, location_id, user_id)
        logger.exception("Review for location %s by user %s violated a constraint", location_id, user_id)
        raise internal_error()
    except (SQLAlchemyError, OSError):
        _abort(db, storage, written)
        logger.exception("Failed to create review for location %s by user %s", location_id, user_id)
        raise internal_error()

    db.refresh(review)
    logger.info("Review %s created for location %s by user %s (%d photos)", review.id, location_id, user_id, len(written))
    return review


def update_review(
    db: Session,
    storage: PhotoStorage,
    review: Review,
    *,
    payload: ReviewPayload,
    keep_photo_ids: Iterable[int] = (),
    photos: Sequence[UploadedPhoto] = (),
) -> Review:
    """Replace description and criteria, drop photos not in keep_photo_ids, add the new ones."""
    keep = set(keep_photo_ids)
    removed = [p for p in review.photos if p.id not in keep]
    validate_photos(photos, already_stored=len(review.photos) - len(removed))

    removed_paths = [p.photo_path for p in removed]
    written: List[str] = []
    try:
        _store_photos(storage, review.location_id, review.user_id, photos, written)

        review.description = payload.description
        review.updated_at = datetime.now(timezone.utc)

        # Old rows must be gone before the new set is inserted (unique criterion per review)
        review.criteria.clear()
        db.flush()
        review.criteria.extend(_build_criteria(payload))

        for photo in removed:
            review.photos.remove(photo)
        for path in written:
            review.photos.append(ReviewPhoto(photo_path=path))

        db.commit()
    except (SQLAlchemyError, OSError):
        _abort(db, storage, written)
        logger.exception("Failed to update review %s", review.id)
        raise internal_error()

    storage.delete_many(removed_paths)
    db.refresh(review)
    logger.info("Review %s updated (%d photos removed, %d added)", review.id, len(removed_paths), len(written))
    return review


def delete_review(db: Session, storage: PhotoStorage, review: Review) -> int:
    """Delete the review row (criteria and photo rows cascade), then its files. Returns files removed."""
    review_id = review.id
    paths = [p.photo_path for p in review.photos]
    try:
        db.delete(review)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to delete review %s", review_id)
        raise internal_error()

    removed = storage.delete_many(paths)
    if removed != len(paths):
        logger.warning("Review %s deleted but %d of %d photo files could not be removed", review_id, len(paths) - removed, len(paths))
    return removed


def photo_paths_for_user(db: Session, user_id: int) -> List[str]:
    rows = (
        db.query(ReviewPhoto.photo_path)
        .join(Review, ReviewPhoto.review_id == Review.id)
        .filter(Review.user_id == user_id)
        .all()
    )
    return [r[0] for r in rows]


# ---- READS & AGGREGATES ----

def _criteria_out(review: Review) -> List[CriterionOut]:
    return [CriterionOut(name=c.criterion_name, rating=c.rating) for c in review.criteria]


def _photos_out(review: Review) -> List[PhotoOut]:
    return [PhotoOut(id=p.id, photo_path=p.photo_path) for p in review.photos]


def review_to_out(review: Review) -> ReviewOut:
    return ReviewOut(
        id=review.id,
        description=review.description,
        created_at=review.created_at,
        updated_at=review.updated_at,
        location_id=review.location_id,
        user_id=review.user_id,
        user_name=review.user.name if review.user else "",
        criteria=_criteria_out(review),
        photos=_photos_out(review),
    )


def compute_summary(ratings: Iterable[Tuple[str, int]], total_reviews: int) -> ReviewSummary:
    """Average per criterion first, then average those averages.

    A criterion rated many times carries the same weight in the overall score
    as one rated once. With no ratings the overall average is 0.
    """
    totals = {}
    for name, rating in ratings:
        total, count = totals.get(name, (0, 0))
        totals[name] = (total + rating, count + 1)

    averages = [
        CriterionAverage(name=name, average=total / count, count=count)
        for name, (total, count) in sorted(totals.items())
    ]
    overall = sum(a.average for a in averages) / len(averages) if averages else 0.0

    return ReviewSummary(total_reviews=total_reviews, overall_average=overall, criteria_averages=averages)


def list_location_reviews(db: Session, location_id: int) -> dict:
    reviews = (
        db.query(Review)
        .options(joinedload(Review.user), selectinload(Review.criteria), selectinload(Review.photos))
        .filter(Review.location_id == location_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )
    ratings = [(c.criterion_name, c.rating) for r in reviews for c in r.criteria]
    return {
        "reviews": [review_to_out(r) for r in reviews],
        "summary": compute_summary(ratings, total_reviews=len(reviews)),
    }


def list_user_reviews(db: Session, user_id: int) -> List[UserReviewOut]:
    reviews = (
        db.query(Review)
        .options(joinedload(Review.location), selectinload(Review.criteria), selectinload(Review.photos))
        .filter(Review.user_id == user_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )
    return [
        UserReviewOut(
            id=r.id,
            description=r.description,
            created_at=r.created_at,
            updated_at=r.updated_at,
            location_id=r.location_id,
            location_name=r.location.name,
            location_address=r.location.address,
            criteria=_criteria_out(r),
            photos=_photos_out(r),
        )
        for r in reviews
    ]
