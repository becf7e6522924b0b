from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import List, Optional
from datetime import datetime

from models.review import CriterionName

MAX_CRITERIA = 5
MAX_PHOTOS = 5
MAX_DESCRIPTION_LENGTH = 1000


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# A single rated criterion as submitted by the client
class CriterionIn(BaseModel):
    name: CriterionName
    rating: int = Field(ge=1, le=5)


# Validated text part of a review submission (photos travel as separate files)
class ReviewPayload(BaseModel):
    description: str = Field(min_length=1, max_length=MAX_DESCRIPTION_LENGTH)
    criteria: List[CriterionIn] = Field(min_length=1, max_length=MAX_CRITERIA)

    @field_validator("criteria")
    @classmethod
    def _unique_names(cls, v: List[CriterionIn]) -> List[CriterionIn]:
        names = [c.name for c in v]
        if len(names) != len(set(names)):
            raise ValueError("Each criterion can be rated only once per review")
        return v


class CriterionOut(BaseModel):
    name: str
    rating: int


class PhotoOut(BaseModel):
    id: int
    photo_path: str


class ReviewOut(BaseModel):
    id: int
    description: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    location_id: int
    user_id: int
    user_name: str
    criteria: List[CriterionOut]
    photos: List[PhotoOut]


# Review as listed on the author's profile, with the reviewed location
class UserReviewOut(BaseModel):
    id: int
    description: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    location_id: int
    location_name: str
    location_address: str
    criteria: List[CriterionOut]
    photos: List[PhotoOut]


class CriterionAverage(BaseModel):
    name: str
    average: float
    count: int


class ReviewSummary(CamelModel):
    total_reviews: int
    overall_average: float
    criteria_averages: List[CriterionAverage]


class LocationReviewsResponse(BaseModel):
    reviews: List[ReviewOut]
    summary: ReviewSummary


class ReviewCreated(CamelModel):
    review_id: int
