"""Availability samples: one live sample per search criteria, written only when offers change."""
import hashlib
import logging
import uuid
from pathlib import Path
from typing import Iterable, Optional

import aiosqlite
import orjson

from src.config import STATE_DB
from src.parse.models import (
    AvailabilityCriteria,
    AvailabilitySample,
    RecordError,
    StoreOutcome,
    VehicleOffer,
    utcnow,
)

logger = logging.getLogger(__name__)


def criteria_key(criteria: AvailabilityCriteria) -> str:
    """Canonical dedup key: the ordered criteria tuple serialized as JSON."""
    return orjson.dumps(list(criteria.key_tuple())).decode()


def content_hash(offers: Iterable[VehicleOffer]) -> str:
    """sha256 over the offer set, independent of offer order."""
    canonical = sorted(
        orjson.dumps(offer.model_dump(mode="json"), option=orjson.OPT_SORT_KEYS)
        for offer in offers
    )
    digest = hashlib.sha256()
    for line in canonical:
        digest.update(line)
        digest.update(b"\n")
    return digest.hexdigest()


class AvailabilitySampleStore:
    """SQLite store deciding between insert, overwrite and no-op."""

    def __init__(self, db_path: Path = STATE_DB):
        self.db_path = db_path

    async def initialize(self) -> None:
        """Create tables if they don't exist."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS availability_samples (
                    criteria_key TEXT PRIMARY KEY,
                    id TEXT NOT NULL,
                    criteria TEXT NOT NULL,
                    offers TEXT NOT NULL,
                    content_hash TEXT NOT NULL,
                    fetched_at TEXT NOT NULL
                )
                """
            )
            await db.commit()
            logger.info(f"Sample database initialized at {self.db_path}")

    @staticmethod
    def _row_to_sample(row) -> AvailabilitySample:
        sample_id, criteria, offers, hash_, fetched_at = row
        return AvailabilitySample(
            id=sample_id,
            criteria=AvailabilityCriteria.model_validate(orjson.loads(criteria)),
            offers=[VehicleOffer.model_validate(o) for o in orjson.loads(offers)],
            content_hash=hash_,
            fetched_at=fetched_at,
        )

    async def get(self, criteria: AvailabilityCriteria) -> Optional[AvailabilitySample]:
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                """
                SELECT id, criteria, offers, content_hash, fetched_at
                FROM availability_samples WHERE criteria_key = ?
                """,
                (criteria_key(criteria),),
            )
            row = await cursor.fetchone()
            return self._row_to_sample(row) if row else None

    async def list_samples(self) -> list[AvailabilitySample]:
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                """
                SELECT id, criteria, offers, content_hash, fetched_at
                FROM availability_samples ORDER BY fetched_at DESC
                """
            )
            return [self._row_to_sample(row) for row in await cursor.fetchall()]

    async def store(
        self,
        criteria: AvailabilityCriteria,
        offers: list[VehicleOffer],
        errors: Optional[list[RecordError]] = None,
    ) -> StoreOutcome:
        """
        Persist ``offers`` for ``criteria``.

        No sample yet -> insert (``is_new``). Sample with a different hash ->
        overwrite in place, keeping its id. Same hash -> nothing is written
        and the outcome is a duplicate.
        """
        key = criteria_key(criteria)
        new_hash = content_hash(offers)
        errors = errors or []

        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "SELECT id, content_hash, fetched_at FROM availability_samples WHERE criteria_key = ?",
                (key,),
            )
            row = await cursor.fetchone()

            if row and row[1] == new_hash:
                logger.info(f"[SAMPLE] Duplicate for {key}, offers unchanged")
                return StoreOutcome(
                    stored=False,
                    duplicate=True,
                    offers_count=len(offers),
                    message=f"Offers unchanged since {row[2]}; nothing stored",
                    sample_id=row[0],
                    errors=errors,
                )

            sample_id = row[0] if row else uuid.uuid4().hex
            offers_json = orjson.dumps([o.model_dump(mode="json") for o in offers]).decode()
            await db.execute(
                """
                INSERT OR REPLACE INTO availability_samples
                    (criteria_key, id, criteria, offers, content_hash, fetched_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    key,
                    sample_id,
                    orjson.dumps(criteria.model_dump(mode="json")).decode(),
                    offers_json,
                    new_hash,
                    utcnow().isoformat(),
                ),
            )
            await db.commit()

        is_new = row is None
        logger.info(f"[SAMPLE] {'Created' if is_new else 'Updated'} sample {sample_id} with {len(offers)} offers")
        return StoreOutcome(
            stored=True,
            is_new=is_new,
            offers_count=len(offers),
            message=f"{'Stored new' if is_new else 'Updated'} sample with {len(offers)} offers",
            sample_id=sample_id,
            errors=errors,
        )
