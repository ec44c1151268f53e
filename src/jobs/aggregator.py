"""Reduce normalization output into a format-agnostic ImportResult."""
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from src.parse.models import ImportResult, NormalizationResult
from src.parse.normalizer import duplicates_collapsed

logger = logging.getLogger(__name__)


@dataclass
class ImportPlan:
    """Counters plus the records that actually need writing."""

    result: ImportResult
    inserts: list[Any] = field(default_factory=list)
    updates: list[Any] = field(default_factory=list)

    @property
    def writes(self) -> list[Any]:
        return self.inserts + self.updates


def _same(record: Any, existing: Any) -> bool:
    return record.model_dump(mode="json") == existing.model_dump(mode="json")


def aggregate(normalization: NormalizationResult, existing: Mapping[str, Any]) -> ImportPlan:
    """
    Classify each canonical record against the currently known ones.

    New key -> imported, known key with changed fields -> updated, known key
    unchanged -> skipped. Records that failed validation and earlier copies
    of a key repeated in the batch are also counted as skipped, so
    ``imported + updated + skipped == total``.
    """
    plan = ImportPlan(
        result=ImportResult(
            total=normalization.total,
            errors=list(normalization.errors),
            format=normalization.format,
        )
    )

    for record in normalization.records:
        current = existing.get(record.key)
        if current is None:
            plan.inserts.append(record)
        elif _same(record, current):
            plan.result.skipped += 1
        else:
            plan.updates.append(record)

    plan.result.imported = len(plan.inserts)
    plan.result.updated = len(plan.updates)
    plan.result.skipped += len(normalization.errors) + duplicates_collapsed(normalization)

    logger.debug(
        f"[IMPORT] {normalization.kind.value}: total={plan.result.total} imported={plan.result.imported} "
        f"updated={plan.result.updated} skipped={plan.result.skipped}"
    )
    return plan
