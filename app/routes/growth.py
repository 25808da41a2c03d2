"""Growth sample routes: record, verify, apply to batch, read history."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.schemas.growth import (
	ApplyMeasurementRequest,
	GrowthMeasurement,
	RecordGrowthSampleRequest,
	VerifyMeasurementRequest,
)
from app.services.batch_locks import BatchWriteLocks
from app.services.growth_service import DEFAULT_HISTORY_LIMIT, GrowthMeasurementService

router = APIRouter(prefix="/growth", tags=["growth"])

batch_locks = BatchWriteLocks()


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(
		status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
		detail="Unexpected growth service failure",
	)


@router.post(
	"/{tenant_id}/batches/{batch_id}/samples",
	response_model=GrowthMeasurement,
	status_code=status.HTTP_201_CREATED,
)
async def record_growth_sample(
	tenant_id: uuid.UUID,
	batch_id: uuid.UUID,
	payload: RecordGrowthSampleRequest,
	db: AsyncSession = Depends(get_db),
) -> GrowthMeasurement:
	service = GrowthMeasurementService(db)
	try:
		async with batch_locks.hold(tenant_id, batch_id):
			# committed before release so the next writer reads this sample as previous
			saved = await service.record_sample(tenant_id, batch_id, payload)
			await db.commit()
		return saved
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/{tenant_id}/measurements/{measurement_id}", response_model=GrowthMeasurement)
async def get_growth_measurement(
	tenant_id: uuid.UUID,
	measurement_id: uuid.UUID,
	db: AsyncSession = Depends(get_db),
) -> GrowthMeasurement:
	service = GrowthMeasurementService(db)
	try:
		return await service.get_measurement(tenant_id, measurement_id)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.post("/{tenant_id}/measurements/{measurement_id}/verify", response_model=GrowthMeasurement)
async def verify_growth_measurement(
	tenant_id: uuid.UUID,
	measurement_id: uuid.UUID,
	payload: VerifyMeasurementRequest,
	db: AsyncSession = Depends(get_db),
) -> GrowthMeasurement:
	service = GrowthMeasurementService(db)
	try:
		return await service.verify_measurement(
			tenant_id,
			measurement_id,
			payload.user_id,
			notes=payload.notes,
			quality_rating=payload.quality_rating,
		)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.post(
	"/{tenant_id}/batches/{batch_id}/measurements/{measurement_id}/apply",
	response_model=GrowthMeasurement,
)
async def apply_growth_measurement(
	tenant_id: uuid.UUID,
	batch_id: uuid.UUID,
	measurement_id: uuid.UUID,
	payload: ApplyMeasurementRequest,
	db: AsyncSession = Depends(get_db),
) -> GrowthMeasurement:
	service = GrowthMeasurementService(db)
	try:
		async with batch_locks.hold(tenant_id, batch_id):
			applied = await service.apply_to_batch(tenant_id, batch_id, measurement_id, payload.user_id)
			await db.commit()
		return applied
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/{tenant_id}/batches/{batch_id}/latest", response_model=GrowthMeasurement | None)
async def get_latest_growth_measurement(
	tenant_id: uuid.UUID,
	batch_id: uuid.UUID,
	db: AsyncSession = Depends(get_db),
) -> GrowthMeasurement | None:
	service = GrowthMeasurementService(db)
	try:
		return await service.latest_measurement(tenant_id, batch_id)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/{tenant_id}/batches/{batch_id}/history", response_model=list[GrowthMeasurement])
async def get_batch_growth_history(
	tenant_id: uuid.UUID,
	batch_id: uuid.UUID,
	limit: int = Query(default=DEFAULT_HISTORY_LIMIT, ge=1, le=500),
	db: AsyncSession = Depends(get_db),
) -> list[GrowthMeasurement]:
	service = GrowthMeasurementService(db)
	try:
		return await service.batch_history(tenant_id, batch_id, limit=limit)
	except Exception as exc:
		raise _map_error(exc) from exc
