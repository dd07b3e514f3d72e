"""
Continuation Store - parked runs awaiting caller input.

The controller writes a continuation when a run suspends and deletes it
when the run is resumed. The SQLite store survives process restarts so
an MCP client can answer a question in a later session.
"""

import logging
from pathlib import Path
from typing import Optional, Protocol

import aiosqlite

from .state import Continuation

logger = logging.getLogger(__name__)


class ContinuationBackend(Protocol):
	"""Storage contract used by the phase controller."""

	async def save(self, continuation: Continuation) -> None: ...

	async def load(self, token: str) -> Optional[Continuation]: ...

	async def delete(self, token: str) -> bool: ...

	async def list_pending(self) -> list[Continuation]: ...


class MemoryContinuationStore:
	"""In-process store; continuations die with the process."""

	def __init__(self):
		self._items: dict[str, Continuation] = {}

	async def save(self, continuation: Continuation) -> None:
		self._items[continuation.token] = continuation.model_copy(deep=True)

	async def load(self, token: str) -> Optional[Continuation]:
		item = self._items.get(token)
		return item.model_copy(deep=True) if item else None

	async def delete(self, token: str) -> bool:
		return self._items.pop(token, None) is not None

	async def list_pending(self) -> list[Continuation]:
		return sorted(self._items.values(), key=lambda c: c.created_at)


class ContinuationStore:
	"""
	SQLite-backed continuation storage.

	Usage:
		store = ContinuationStore("data/sessions.db")
		await store.init()

		await store.save(continuation)
		parked = await store.load(token)
	"""

	def __init__(self, db_path: str):
		"""Initialize the continuation store."""
		self.db_path = Path(db_path)
		self.db_path.parent.mkdir(parents=True, exist_ok=True)
		self._db: Optional[aiosqlite.Connection] = None

	async def init(self):
		"""Initialize the database schema."""
		self._db = await aiosqlite.connect(str(self.db_path))
		self._db.row_factory = aiosqlite.Row

		await self._db.execute("""
			CREATE TABLE IF NOT EXISTS continuations (
				token TEXT PRIMARY KEY,
				task_id TEXT NOT NULL,
				phase TEXT NOT NULL,
				data TEXT NOT NULL,
				created_at TEXT NOT NULL
			)
		""")

		await self._db.execute("""
			CREATE INDEX IF NOT EXISTS idx_continuations_task ON continuations(task_id)
		""")

		await self._db.commit()
		logger.info(f"Continuation store initialized: {self.db_path}")

	async def close(self):
		"""Close the database connection."""
		if self._db:
			await self._db.close()
			self._db = None

	async def save(self, continuation: Continuation) -> None:
		"""Insert or replace a continuation."""
		if not self._db:
			await self.init()

		await self._db.execute(
			"""
			INSERT OR REPLACE INTO continuations (token, task_id, phase, data, created_at)
			VALUES (?, ?, ?, ?, ?)
			""",
			(
				continuation.token,
				continuation.task.id,
				continuation.phase.value,
				continuation.model_dump_json(),
				continuation.created_at,
			),
		)
		await self._db.commit()
		logger.debug(f"Parked task {continuation.task.id} at {continuation.phase.value}")

	async def load(self, token: str) -> Optional[Continuation]:
		"""Load a continuation by token."""
		if not self._db:
			await self.init()

		async with self._db.execute(
			"SELECT data FROM continuations WHERE token = ?",
			(token,)
		) as cursor:
			row = await cursor.fetchone()

		if not row:
			return None
		return Continuation.model_validate_json(row["data"])

	async def delete(self, token: str) -> bool:
		"""Remove a continuation. Returns False when the token is unknown."""
		if not self._db:
			await self.init()

		cursor = await self._db.execute(
			"DELETE FROM continuations WHERE token = ?",
			(token,)
		)
		await self._db.commit()
		return cursor.rowcount > 0

	async def list_pending(self) -> list[Continuation]:
		"""All parked runs, oldest first."""
		if not self._db:
			await self.init()

		async with self._db.execute(
			"SELECT data FROM continuations ORDER BY created_at ASC"
		) as cursor:
			rows = await cursor.fetchall()

		return [Continuation.model_validate_json(row["data"]) for row in rows]


# Global store instance
_store: Optional[ContinuationStore] = None


async def get_continuation_store(db_path: Optional[str] = None) -> ContinuationStore:
	"""Get or create the global continuation store."""
	global _store
	if _store is None:
		if db_path is None:
			from ..config import get_config
			db_path = str(get_config().sessions_db_path)
		_store = ContinuationStore(db_path)
		await _store.init()
	return _store
