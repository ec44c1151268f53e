"""Branch, location and legacy location-list imports."""
import logging
from typing import Any, Optional

from src.config import config
from src.errors import QuotaExceededError, QuotaExceededPayload
from src.fetch.client import SupplierClient
from src.jobs.aggregator import ImportPlan, aggregate
from src.parse.detector import detect_format
from src.parse.models import EntityKind, ImportResult
from src.parse.normalizer import normalize
from src.parse.xml_records import build_location_list_request
from src.store.capture import CaptureStore
from src.store.catalog import CatalogStore

logger = logging.getLogger(__name__)


class ImportRunner:
    """
    fetch (or take a provided payload) -> detect -> normalize -> aggregate
    -> capacity check -> upsert. Format and record problems end up in the
    returned ImportResult; transport and quota failures are raised.
    """

    def __init__(
        self,
        client: SupplierClient,
        catalog: CatalogStore,
        captures: Optional[CaptureStore] = None,
    ):
        self.client = client
        self.catalog = catalog
        self.captures = captures

    async def import_branches(self, payload: Any = None, endpoint: Optional[str] = None) -> ImportResult:
        source = endpoint or config.BRANCHES_ENDPOINT
        if payload is None:
            payload = await self._fetch(source, "BRANCHES_ENDPOINT")
        return await self._import(EntityKind.BRANCH, payload, source)

    async def import_locations(self, payload: Any = None, endpoint: Optional[str] = None) -> ImportResult:
        source = endpoint or config.LOCATIONS_ENDPOINT
        if payload is None:
            payload = await self._fetch(source, "LOCATIONS_ENDPOINT")
        return await self._import(EntityKind.LOCATION, payload, source)

    async def import_location_list(
        self,
        payload: Any = None,
        endpoint: Optional[str] = None,
        request_root: Optional[str] = None,
        account_id: Optional[str] = None,
    ) -> ImportResult:
        """Import locations from the legacy list endpoint (XML request, XML or dump response)."""
        source = endpoint or config.LOCATION_LIST_ENDPOINT
        if payload is None:
            if not source:
                raise ValueError("LOCATION_LIST_ENDPOINT is not configured")
            body = build_location_list_request(
                request_root or config.LOCATION_LIST_REQUEST_ROOT,
                account_id or config.ACCOUNT_ID,
            )
            logger.info(f"[IMPORT] Requesting location list from {source}")
            payload = await self.client.post_text(source, body)
        return await self._import(EntityKind.LOCATION, payload, source)

    async def _fetch(self, url: Optional[str], setting: str) -> str:
        if not url:
            raise ValueError(f"{setting} is not configured")
        logger.info(f"[IMPORT] Fetching {url}")
        return await self.client.get_text(url)

    async def _import(self, kind: EntityKind, payload: Any, source: Optional[str]) -> ImportResult:
        detection = detect_format(payload, kind)
        if not detection.recognized:
            error = detection.format_error()
            if self.captures:
                await self.captures.capture(kind, source, error)
            return ImportResult(format=detection.format, format_error=error)

        normalization = normalize(detection)
        existing = await self.catalog.get_existing(kind, [r.key for r in normalization.records])
        plan = aggregate(normalization, existing)

        if kind is EntityKind.BRANCH:
            await self._check_capacity(plan)

        await self.catalog.upsert(kind, plan.writes)
        result = plan.result
        logger.info(
            f"[IMPORT] {kind.value} from {source or 'payload'} ({detection.format.value}): "
            f"total={result.total} imported={result.imported} updated={result.updated} "
            f"skipped={result.skipped} errors={len(result.errors)}"
        )
        return result

    async def _check_capacity(self, plan: ImportPlan) -> None:
        """Raise before writing anything when new branches exceed the subscription."""
        subscribed = await self.catalog.get_subscribed_count()
        if subscribed is None:
            return
        adding = len(plan.inserts)
        current = await self.catalog.count(EntityKind.BRANCH)
        if current + adding <= subscribed:
            return

        need_to_add = current + adding - subscribed
        logger.warning(
            f"[IMPORT] Branch quota exceeded: current={current} adding={adding} subscribed={subscribed}"
        )
        raise QuotaExceededError(
            QuotaExceededPayload(
                message=(
                    f"Importing {adding} new branches would exceed your subscription of "
                    f"{subscribed} ({current} in use)"
                ),
                current_count=current,
                adding=adding,
                need_to_add=need_to_add,
                subscribed_count=subscribed,
            )
        )
