"""Per-batch write serialization for sample recording and batch write-back."""

from __future__ import annotations

import asyncio
import uuid
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class BatchWriteLocks:
	"""One ``asyncio.Lock`` per (tenant, batch).

	Entries are weak: a lock is dropped once no holder or waiter references
	it. Only serializes writers inside a single process; multiple workers need
	a shared lock (e.g. a redis lock) on top.
	"""

	def __init__(self) -> None:
		self._locks: weakref.WeakValueDictionary[tuple[uuid.UUID, uuid.UUID], asyncio.Lock] = (
			weakref.WeakValueDictionary()
		)

	def __len__(self) -> int:
		return len(self._locks)

	def lock_for(self, tenant_id: uuid.UUID, batch_id: uuid.UUID) -> asyncio.Lock:
		key = (tenant_id, batch_id)
		lock = self._locks.get(key)
		if lock is None:
			lock = asyncio.Lock()
			self._locks[key] = lock
		return lock

	@asynccontextmanager
	async def hold(self, tenant_id: uuid.UUID, batch_id: uuid.UUID) -> AsyncIterator[None]:
		async with self.lock_for(tenant_id, batch_id):
			yield
