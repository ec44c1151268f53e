"""Fetch availability through the configured adapter and store it as a sample."""
import logging
from typing import Any, Awaitable, Callable, Optional, Protocol

from src.config import config
from src.fetch.client import SupplierClient
from src.parse.detector import detect_format
from src.parse.models import AvailabilityCriteria, EntityKind, StoreOutcome
from src.parse.normalizer import normalize
from src.parse.xml_records import build_availability_request
from src.store.capture import CaptureStore
from src.store.samples import AvailabilitySampleStore

logger = logging.getLogger(__name__)

RpcCall = Callable[[dict[str, Any]], Awaitable[Any]]


class AvailabilityAdapter(Protocol):
    async def fetch(self, criteria: AvailabilityCriteria) -> Any:
        """Return the raw availability response for ``criteria``."""
        ...


class XmlAvailabilityAdapter:
    """OTA_VehAvailRateRQ / OTA_VehAvailRateRS over HTTP POST."""

    def __init__(self, client: SupplierClient, endpoint: str):
        self.client = client
        self.endpoint = endpoint

    async def fetch(self, criteria: AvailabilityCriteria) -> str:
        body = build_availability_request(
            criteria.pickup_loc,
            criteria.dropoff_loc,
            criteria.pickup_iso,
            criteria.dropoff_iso,
            requestor_id=criteria.requestor_id,
            driver_age=criteria.driver_age,
            citizen_country=criteria.citizen_country,
        )
        return await self.client.post_text(self.endpoint, body)


class JsonAvailabilityAdapter:
    """Same search fields as the XML request, as a JSON body."""

    def __init__(self, client: SupplierClient, endpoint: str):
        self.client = client
        self.endpoint = endpoint

    @staticmethod
    def request_body(criteria: AvailabilityCriteria) -> dict[str, Any]:
        body = {
            "pickupLocation": criteria.pickup_loc,
            "returnLocation": criteria.dropoff_loc,
            "pickupDateTime": criteria.pickup_iso,
            "returnDateTime": criteria.dropoff_iso,
            "requestorId": criteria.requestor_id,
            "driverAge": criteria.driver_age,
            "residenceCountry": criteria.citizen_country,
        }
        return {k: v for k, v in body.items() if v is not None}

    async def fetch(self, criteria: AvailabilityCriteria) -> str:
        return await self.client.post_json(self.endpoint, self.request_body(criteria))


class GrpcAvailabilityAdapter:
    """Delegates to an injected RPC call returning a structured offer list."""

    def __init__(self, rpc: RpcCall):
        self.rpc = rpc

    async def fetch(self, criteria: AvailabilityCriteria) -> Any:
        return await self.rpc(criteria.model_dump(mode="json", exclude={"adapter_type"}))


def build_adapter(
    adapter_type: str,
    client: Optional[SupplierClient] = None,
    endpoint: Optional[str] = None,
    rpc: Optional[RpcCall] = None,
) -> AvailabilityAdapter:
    if adapter_type == "grpc":
        if rpc is None:
            raise ValueError("grpc adapter needs an RPC callable")
        return GrpcAvailabilityAdapter(rpc)

    endpoint = endpoint or config.AVAILABILITY_ENDPOINT
    if client is None or not endpoint:
        raise ValueError(f"{adapter_type} adapter needs a client and AVAILABILITY_ENDPOINT")
    if adapter_type == "xml":
        return XmlAvailabilityAdapter(client, endpoint)
    if adapter_type == "json":
        return JsonAvailabilityAdapter(client, endpoint)
    raise ValueError(f"Unknown adapter type {adapter_type!r}")


class AvailabilityFetcher:
    """fetch -> detect -> normalize -> store (insert, overwrite or duplicate)."""

    def __init__(
        self,
        store: AvailabilitySampleStore,
        adapters: Optional[dict[str, AvailabilityAdapter]] = None,
        captures: Optional[CaptureStore] = None,
    ):
        self.store = store
        self.adapters = adapters or {}
        self.captures = captures

    async def fetch_and_store(self, criteria: AvailabilityCriteria, payload: Any = None) -> StoreOutcome:
        if payload is None:
            adapter = self.adapters.get(criteria.adapter_type)
            if adapter is None:
                raise ValueError(f"No adapter configured for {criteria.adapter_type!r}")
            logger.info(
                f"[AVAIL] {criteria.adapter_type} search {criteria.pickup_loc}->{criteria.dropoff_loc} "
                f"{criteria.pickup_iso}..{criteria.dropoff_iso}"
            )
            payload = await adapter.fetch(criteria)

        detection = detect_format(payload, EntityKind.VEHICLE_OFFER)
        if not detection.recognized:
            error = detection.format_error()
            if self.captures:
                await self.captures.capture(EntityKind.VEHICLE_OFFER, criteria.adapter_type, error)
            return StoreOutcome(stored=False, message=error.message, format_error=error)

        normalization = normalize(detection)
        if normalization.errors:
            logger.info(f"[AVAIL] {len(normalization.errors)} offers failed validation")
        return await self.store.store(criteria, normalization.records, normalization.errors)
