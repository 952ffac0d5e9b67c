"""
Reflection endpoints - the owner reads their push records and writes reflections.
Records belonging to other users are reported as not found.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pushtomemory.api.auth import get_current_user_id
from pushtomemory.database import get_db
from pushtomemory.models.push_reflection import PushReflection
from pushtomemory.schemas.api_responses import (
    ReflectionListResponse,
    ReflectionOut,
    ReflectionUpdateRequest,
)
from pushtomemory.services.reflections import (
    InvalidReflectionUpdateError,
    ReflectionNotFoundError,
    get_reflection,
    list_user_reflections,
    update_reflection,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/reflections", tags=["reflections"])


async def _get_owned(db: AsyncSession, reflection_id: str, user_id: str) -> PushReflection:
    record = await get_reflection(db, reflection_id)
    if record is None or record.user_id != user_id:
        raise HTTPException(status_code=404, detail="Reflection not found")
    return record


@router.get("", response_model=ReflectionListResponse)
async def list_reflections(
    repository: Optional[str] = Query(None),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    records = await list_user_reflections(db, user_id, repository)
    return ReflectionListResponse(
        reflections=[ReflectionOut.model_validate(r) for r in records],
        total=len(records),
    )


@router.get("/{reflection_id}", response_model=ReflectionOut)
async def get_reflection_detail(
    reflection_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    record = await _get_owned(db, reflection_id, user_id)
    return ReflectionOut.model_validate(record)


@router.put("/{reflection_id}", response_model=ReflectionOut)
async def put_reflection(
    reflection_id: str,
    payload: ReflectionUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Save the owner's reflection (status completed) or skip it (status skipped)."""
    await _get_owned(db, reflection_id, user_id)

    try:
        record = await update_reflection(db, reflection_id, payload.reflection, payload.status)
    except ReflectionNotFoundError:
        raise HTTPException(status_code=404, detail="Reflection not found")
    except InvalidReflectionUpdateError as e:
        raise HTTPException(status_code=422, detail=str(e))

    await db.commit()
    return ReflectionOut.model_validate(record)
