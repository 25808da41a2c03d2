"""Feeding ledger collaborator: read-only feed totals per batch."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.feeding import FeedingRecord


class FeedingLedger(Protocol):
	async def sum_feed(
		self,
		batch_id: uuid.UUID,
		tenant_id: uuid.UUID,
		start: datetime | None = None,
		end: datetime | None = None,
	) -> float:
		"""Feed delivered (kg) with ``start <= feeding_date <= end``; open bounds when None."""
		...


class SqlFeedingLedger:
	def __init__(self, db: AsyncSession):
		self.db = db

	async def sum_feed(
		self,
		batch_id: uuid.UUID,
		tenant_id: uuid.UUID,
		start: datetime | None = None,
		end: datetime | None = None,
	) -> float:
		stmt = select(func.coalesce(func.sum(FeedingRecord.actual_amount_kg), 0.0)).where(
			FeedingRecord.tenant_id == tenant_id,
			FeedingRecord.batch_id == batch_id,
		)
		if start is not None:
			stmt = stmt.where(FeedingRecord.feeding_date >= start)
		if end is not None:
			stmt = stmt.where(FeedingRecord.feeding_date <= end)

		row = await self.db.execute(stmt)
		return float(row.scalar_one() or 0.0)
