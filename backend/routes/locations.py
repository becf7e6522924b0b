# backend/routes/locations.py
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from database import get_db
from utils.tokenJWT import get_current_user, admin_required
from utils.audit import write_log, client_ip
from models.users import User
from models.location import Location
import schemas.location as location_schemas

router = APIRouter(prefix="/locations", tags=["Locations"])


# ---- HELPERS ----
def _location_to_out(location: Location) -> location_schemas.LocationOut:
    out = location_schemas.LocationOut.model_validate(location)
    out.created_by_name = location.creator.name if location.creator else None
    return out

def _get_active_or_404(db: Session, location_id: int) -> Location:
    location = (
        db.query(Location)
        .options(joinedload(Location.creator))
        .filter(Location.id == location_id, Location.is_active == True)  # noqa: E712
        .first()
    )
    if not location:
        raise HTTPException(status_code=404, detail="Location not found")
    return location


# =========================
# LIST
# =========================
@router.get("", response_model=List[location_schemas.LocationOut])
def list_locations(
    search: Optional[str] = Query(None, description="Substring of name, description or address"),
    category: Optional[str] = Query(None, description="Exact category"),
    is_active: bool = Query(True, description="Set to false to list removed locations"),
    db: Session = Depends(get_db),
):
    query = db.query(Location).options(joinedload(Location.creator)).filter(Location.is_active == is_active)

    if category:
        query = query.filter(Location.category == category)

    if search:
        like = f"%{search}%"
        query = query.filter(or_(
            Location.name.ilike(like),
            Location.description.ilike(like),
            Location.address.ilike(like),
        ))

    locations = query.order_by(Location.name.asc()).all()
    return [_location_to_out(l) for l in locations]


@router.get("/categories", response_model=List[str])
def list_categories(db: Session = Depends(get_db)):
    values = (
        db.query(Location.category)
        .distinct()
        .filter(Location.is_active == True, Location.category != None, Location.category != "")  # noqa: E711,E712
        .order_by(Location.category.asc())
        .all()
    )
    return [v[0] for v in values]


# =========================
# DETAIL
# =========================
@router.get("/{location_id}", response_model=location_schemas.LocationOut)
def get_location(location_id: int, db: Session = Depends(get_db)):
    return _location_to_out(_get_active_or_404(db, location_id))


# =========================
# CREATE
# =========================
@router.post("", response_model=location_schemas.LocationOut, status_code=status.HTTP_201_CREATED)
def create_location(
    payload: location_schemas.LocationCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    location = Location(**payload.model_dump(), created_by=current_user.id, is_active=True)
    db.add(location)
    db.commit()
    db.refresh(location)

    write_log(db, user_id=current_user.id, action="LOCATION_CREATE", resource="locations", resource_id=location.id,
              ip=client_ip(request), meta={"name": location.name})

    return _location_to_out(_get_active_or_404(db, location.id))


# =========================
# UPDATE
# =========================
@router.put("/{location_id}", response_model=location_schemas.LocationOut)
def update_location(
    location_id: int,
    payload: location_schemas.LocationUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    location = _get_active_or_404(db, location_id)

    for key, value in payload.model_dump().items():
        setattr(location, key, value)

    db.commit()

    write_log(db, user_id=current_user.id, action="LOCATION_UPDATE", resource="locations", resource_id=location_id,
              ip=client_ip(request))

    return _location_to_out(_get_active_or_404(db, location_id))


# =========================
# DELETE (soft delete)
# =========================
@router.delete("/{location_id}")
def delete_location(
    location_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_required),
):
    location = db.query(Location).filter(Location.id == location_id).first()
    if not location:
        raise HTTPException(status_code=404, detail="Location not found")

    location.is_active = False
    db.commit()

    write_log(db, user_id=current_user.id, action="LOCATION_DELETE", resource="locations", resource_id=location_id,
              ip=client_ip(request))

    return {"message": "Location removed"}
