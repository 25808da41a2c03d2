"""Growth analysis & FCR routes."""

from __future__ import annotations

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.schemas.analytics import GrowthAnalysisResult
from app.schemas.fcr import (
	BatchFCRSummary,
	CumulativeFCR,
	FCRAnomalyReport,
	FCRCalculationResult,
	FCRComparison,
	FCRTrendAnalysis,
)
from app.schemas.growth import as_utc
from app.services.analysis_service import GrowthAnalysisService
from app.services.fcr_service import FCRCalculator

router = APIRouter(prefix="/analytics", tags=["analytics"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="analytics failure")


@router.get("/{tenant_id}/batches/{batch_id}/growth", response_model=GrowthAnalysisResult)
async def get_growth_analysis(
	tenant_id: uuid.UUID,
	batch_id: uuid.UUID,
	request: Request,
	db: AsyncSession = Depends(get_db),
) -> GrowthAnalysisResult:
	service = GrowthAnalysisService(db, getattr(request.app.state, "redis", None))
	try:
		return await service.get_analysis(batch_id, tenant_id)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/{tenant_id}/batches/{batch_id}/fcr/period", response_model=FCRCalculationResult)
async def get_period_fcr(
	tenant_id: uuid.UUID,
	batch_id: uuid.UUID,
	start: datetime = Query(...),
	end: datetime = Query(...),
	target_fcr: float | None = Query(default=None, gt=0),
	db: AsyncSession = Depends(get_db),
) -> FCRCalculationResult:
	start, end = as_utc(start), as_utc(end)
	if end < start:
		raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="end must not be before start")

	service = FCRCalculator(db)
	try:
		return await service.calculate_period_fcr(batch_id, tenant_id, start, end, target_fcr)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/{tenant_id}/batches/{batch_id}/fcr/cumulative", response_model=CumulativeFCR)
async def get_cumulative_fcr(
	tenant_id: uuid.UUID,
	batch_id: uuid.UUID,
	end: datetime | None = Query(default=None),
	db: AsyncSession = Depends(get_db),
) -> CumulativeFCR:
	service = FCRCalculator(db)
	try:
		return await service.calculate_cumulative_fcr(batch_id, tenant_id, as_utc(end) if end else None)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/{tenant_id}/batches/{batch_id}/fcr/trend", response_model=FCRTrendAnalysis)
async def get_fcr_trend(
	tenant_id: uuid.UUID,
	batch_id: uuid.UUID,
	db: AsyncSession = Depends(get_db),
) -> FCRTrendAnalysis:
	service = FCRCalculator(db)
	try:
		return await service.analyze_fcr_trend(batch_id, tenant_id)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/{tenant_id}/batches/{batch_id}/fcr/comparison", response_model=FCRComparison)
async def get_fcr_comparison(
	tenant_id: uuid.UUID,
	batch_id: uuid.UUID,
	species_code: str | None = Query(default=None),
	db: AsyncSession = Depends(get_db),
) -> FCRComparison:
	service = FCRCalculator(db)
	try:
		return await service.compare_fcr(batch_id, tenant_id, species_code)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/{tenant_id}/batches/{batch_id}/fcr/anomalies", response_model=FCRAnomalyReport)
async def get_fcr_anomalies(
	tenant_id: uuid.UUID,
	batch_id: uuid.UUID,
	db: AsyncSession = Depends(get_db),
) -> FCRAnomalyReport:
	service = FCRCalculator(db)
	try:
		return await service.detect_fcr_anomalies(batch_id, tenant_id)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/{tenant_id}/batches/{batch_id}/fcr/summary", response_model=BatchFCRSummary)
async def get_fcr_summary(
	tenant_id: uuid.UUID,
	batch_id: uuid.UUID,
	db: AsyncSession = Depends(get_db),
) -> BatchFCRSummary:
	service = FCRCalculator(db)
	try:
		return await service.get_batch_fcr_summary(batch_id, tenant_id)
	except Exception as exc:
		raise _map_error(exc) from exc
