# tests/test_services.py
import pytest
from fastapi import HTTPException

from schemas.review import ReviewPayload
from models.review import Review
from services.reviews import (
    CONFLICT_MESSAGE, UploadedPhoto, compute_summary, create_review, parse_keep_photos, validate_photos,
)
from utils.storage import PhotoStorage, content_type_for, file_extension

from conftest import auth_header, photo_files, review_form


def test_compute_summary_weights_criteria_equally():
    ratings = [("Access", 5), ("Parking", 3), ("Access", 3)]
    summary = compute_summary(ratings, total_reviews=2)
    assert summary.overall_average == 3.5
    assert [(a.name, a.average, a.count) for a in summary.criteria_averages] == [
        ("Access", 4.0, 2),
        ("Parking", 3.0, 1),
    ]


def test_compute_summary_without_ratings():
    summary = compute_summary([], total_reviews=0)
    assert summary.overall_average == 0
    assert summary.criteria_averages == []
    assert summary.model_dump(by_alias=True) == {"totalReviews": 0, "overallAverage": 0.0, "criteriaAverages": []}


def test_parse_keep_photos():
    assert parse_keep_photos(None) == []
    assert parse_keep_photos("[3, 5]") == [3, 5]
    for raw in ("[true]", '["1"]', "{}", "nope"):
        with pytest.raises(HTTPException) as exc:
            parse_keep_photos(raw)
        assert exc.value.status_code == 400


def test_validate_photos_counts_existing_ones():
    photos = [UploadedPhoto("a.jpg", b"1"), UploadedPhoto("b.webp", b"2")]
    validate_photos(photos, already_stored=3)
    with pytest.raises(HTTPException):
        validate_photos(photos, already_stored=4)
    with pytest.raises(HTTPException):
        validate_photos([UploadedPhoto("script.sh", b"#!")])


def test_failed_insert_removes_written_files(db, storage, user):
    # No such location: the foreign key rejects the row after the files were written
    payload = ReviewPayload(description="Orphan", criteria=[{"name": "Access", "rating": 3}])
    with pytest.raises(HTTPException) as exc:
        create_review(db, storage, location_id=12345, user_id=user.id, payload=payload,
                      photos=[UploadedPhoto("a.png", b"x"), UploadedPhoto("b.png", b"y")])
    assert exc.value.status_code == 500
    assert list(storage.reviews_dir.iterdir()) == []


def test_storage_names_and_lookups(tmp_path):
    store = PhotoStorage(tmp_path)
    first = store.save_review_photo(location_id=4, user_id=9, index=0, filename="Front.JPG", data=b"a")
    second = store.save_review_photo(location_id=4, user_id=9, index=0, filename="Front.JPG", data=b"b")

    assert first.startswith("/uploads/reviews/4_9_") and first.endswith("_0.jpg")
    assert first != second
    assert store.path_for(first).read_bytes() == b"a"

    assert store.path_for("../etc/passwd") is None
    assert store.delete(first) is True
    assert store.delete(first) is False
    assert store.delete_many([second, "/uploads/reviews/missing.png"]) == 1


def test_file_helpers():
    assert file_extension("photo.PNG") == "png"
    assert file_extension("no_extension") == ""
    assert content_type_for("x.webp") == "image/webp"
    assert content_type_for("x.bin") == "application/octet-stream"


def test_insert_conflict_is_reported_as_conflict(db, storage, user, location):
    # Another submission for the same (location, user) landed after the route's pre-check
    db.add(Review(location_id=location.id, user_id=user.id, description="First one in"))
    db.commit()

    payload = ReviewPayload(description="Late duplicate", criteria=[{"name": "Parking", "rating": 2}])
    with pytest.raises(HTTPException) as exc:
        create_review(db, storage, location_id=location.id, user_id=user.id, payload=payload,
                      photos=[UploadedPhoto("a.jpg", b"x")])
    assert exc.value.status_code == 409
    assert exc.value.detail == CONFLICT_MESSAGE
    assert list(storage.reviews_dir.iterdir()) == []
    assert db.query(Review).filter(Review.location_id == location.id).one().description == "First one in"


def test_failed_update_keeps_old_rows_and_files(client, monkeypatch, storage, user, location):
    created = client.post(
        f"/locations/{location.id}/reviews",
        data=review_form(description="Before", criteria=[{"name": "Access", "rating": 2}]),
        files=photo_files(2),
        headers=auth_header(user.id),
    )
    review_url = f"/locations/{location.id}/reviews/{created.json()['reviewId']}"
    before = client.get(review_url).json()
    files_before = sorted(p.name for p in storage.reviews_dir.iterdir())

    save = storage.save_review_photo
    calls = []

    def fail_on_second_write(**kwargs):
        calls.append(kwargs["index"])
        if len(calls) == 2:
            raise OSError("disk full")
        return save(**kwargs)

    monkeypatch.setattr(storage, "save_review_photo", fail_on_second_write)

    resp = client.put(
        review_url,
        data=review_form(description="After", criteria=[{"name": "Signage", "rating": 5}]),
        files=photo_files(2, ext="png"),
        headers=auth_header(user.id),
    )
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Internal server error"

    assert client.get(review_url).json() == before
    assert sorted(p.name for p in storage.reviews_dir.iterdir()) == files_before
