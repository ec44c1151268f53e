"""Persisted verdicts: verification history and the last endpoint test."""
import logging
from pathlib import Path
from typing import Optional

import aiosqlite
import orjson

from src.config import STATE_DB, config
from src.parse.models import CachedEndpointTest, EndpointTestResult, VerificationResult

logger = logging.getLogger(__name__)


class VerdictStore:
    """SQLite store for verdicts shown without re-running them."""

    def __init__(self, db_path: Path = STATE_DB, history_limit: Optional[int] = None):
        self.db_path = db_path
        self.history_limit = history_limit or config.VERIFICATION_HISTORY_LIMIT

    async def initialize(self) -> None:
        """Create tables if they don't exist."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS verification_history (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    company_id TEXT NOT NULL,
                    data TEXT NOT NULL
                )
                """
            )
            await db.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_history_company ON verification_history(company_id)
                """
            )
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS endpoint_tests (
                    company_id TEXT PRIMARY KEY,
                    valid_for_address TEXT NOT NULL,
                    data TEXT NOT NULL
                )
                """
            )
            await db.commit()
            logger.info(f"Verdict database initialized at {self.db_path}")

    async def add_verification(self, result: VerificationResult) -> None:
        """Prepend a verdict and trim the company's history to the limit."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "INSERT INTO verification_history (company_id, data) VALUES (?, ?)",
                (result.company_id, orjson.dumps(result.model_dump(mode="json")).decode()),
            )
            await db.execute(
                """
                DELETE FROM verification_history
                WHERE company_id = ? AND seq NOT IN (
                    SELECT seq FROM verification_history
                    WHERE company_id = ? ORDER BY seq DESC LIMIT ?
                )
                """,
                (result.company_id, result.company_id, self.history_limit),
            )
            await db.commit()

    async def history(self, company_id: str, limit: Optional[int] = None) -> list[VerificationResult]:
        """Verdicts, most recent first."""
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                """
                SELECT data FROM verification_history
                WHERE company_id = ? ORDER BY seq DESC LIMIT ?
                """,
                (company_id, limit or self.history_limit),
            )
            rows = await cursor.fetchall()
        return [VerificationResult.model_validate(orjson.loads(row[0])) for row in rows]

    async def last_verification(self, company_id: str) -> Optional[VerificationResult]:
        results = await self.history(company_id, limit=1)
        return results[0] if results else None

    async def save_endpoint_test(self, company_id: str, result: EndpointTestResult) -> None:
        cached = CachedEndpointTest(result=result, valid_for_address=result.addr)
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                INSERT OR REPLACE INTO endpoint_tests (company_id, valid_for_address, data)
                VALUES (?, ?, ?)
                """,
                (company_id, cached.valid_for_address, orjson.dumps(cached.model_dump(mode="json")).decode()),
            )
            await db.commit()

    async def cached_endpoint_test(self, company_id: str, current_address: Optional[str]) -> Optional[EndpointTestResult]:
        """
        Last test result, only while it was run against ``current_address``.
        A result for another address is deleted and None is returned.
        """
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "SELECT data FROM endpoint_tests WHERE company_id = ?",
                (company_id,),
            )
            row = await cursor.fetchone()
            if row is None:
                return None

            cached = CachedEndpointTest.model_validate(orjson.loads(row[0]))
            if cached.valid_for_address == current_address:
                return cached.result

            logger.info(
                f"[PROBE] Discarding cached test for {cached.valid_for_address}; "
                f"address is now {current_address}"
            )
            await db.execute("DELETE FROM endpoint_tests WHERE company_id = ?", (company_id,))
            await db.commit()
            return None
