"""
Feature catalog API routes.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.catalog import service
from app.features.catalog.schemas import FeatureCreate, FeatureListResponse, FeatureResponse, FeatureUpdate
from app.features.permissions.guard import require_operation
from app.features.permissions.operations import (
    CREATE_FEATURE,
    DELETE_FEATURE,
    GET_FEATURE,
    LIST_FEATURES,
    UPDATE_FEATURE,
)


router = APIRouter()


@router.post(
    "",
    response_model=FeatureResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_operation(CREATE_FEATURE))],
)
async def create_feature(body: FeatureCreate, db: AsyncSession = Depends(get_db)):
    """Add a feature to the catalog."""
    return await service.create_feature(db, body.name)


@router.get("", response_model=FeatureListResponse, dependencies=[Depends(require_operation(LIST_FEATURES))])
async def list_features(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    items, total = await service.list_features(db, skip=skip, limit=limit)
    return FeatureListResponse(items=items, total=total, skip=skip, limit=limit)


@router.get("/{feature_id}", response_model=FeatureResponse, dependencies=[Depends(require_operation(GET_FEATURE))])
async def get_feature(feature_id: str, db: AsyncSession = Depends(get_db)):
    return await service.get_feature(db, feature_id)


@router.patch(
    "/{feature_id}",
    response_model=FeatureResponse,
    dependencies=[Depends(require_operation(UPDATE_FEATURE))],
)
async def rename_feature(feature_id: str, body: FeatureUpdate, db: AsyncSession = Depends(get_db)):
    """Rename a feature. Refused while any role grants it."""
    return await service.rename_feature(db, feature_id, body.name)


@router.delete(
    "/{feature_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_operation(DELETE_FEATURE))],
)
async def delete_feature(feature_id: str, db: AsyncSession = Depends(get_db)):
    """Remove a feature. Refused while any role grants it."""
    await service.delete_feature(db, feature_id)
