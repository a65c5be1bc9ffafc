"""
Pydantic schemas for the feature catalog.
"""
from datetime import datetime
from typing import List
from pydantic import BaseModel, Field, ConfigDict


class FeatureCreate(BaseModel):
    """Schema for creating a feature."""
    name: str = Field(..., min_length=1, max_length=100, description="Feature name, e.g. 'venue-booking'")


class FeatureUpdate(BaseModel):
    """Schema for renaming a feature."""
    name: str = Field(..., min_length=1, max_length=100)


class FeatureResponse(BaseModel):
    id: str
    name: str
    catalog_key: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FeatureListResponse(BaseModel):
    items: List[FeatureResponse]
    total: int
    skip: int
    limit: int
