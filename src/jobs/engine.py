"""Wiring of stores, client and flows shared by the CLI and the API."""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx

from src.config import CAPTURE_DIR, STATE_DB, config
from src.fetch.client import SupplierClient
from src.jobs.availability import AvailabilityFetcher, RpcCall, build_adapter
from src.jobs.imports import ImportRunner
from src.jobs.probes import EndpointTestHarness, HttpProbeTransport
from src.jobs.quota import OperationId, QuotaRetryFlow, capacity_increaser
from src.jobs.verification import VerificationOrchestrator, http_payload_fetch
from src.store.capture import CaptureStore
from src.store.catalog import CatalogStore
from src.store.samples import AvailabilitySampleStore
from src.store.verdicts import VerdictStore

logger = logging.getLogger(__name__)


@dataclass
class Engine:
    client: SupplierClient
    probe_client: SupplierClient
    catalog: CatalogStore
    samples: AvailabilitySampleStore
    verdicts: VerdictStore
    captures: CaptureStore
    importer: ImportRunner
    quota: QuotaRetryFlow
    harness: EndpointTestHarness
    verification: VerificationOrchestrator
    fetcher: AvailabilityFetcher

    @classmethod
    def create(
        cls,
        db_path: Path = STATE_DB,
        capture_dir: Path = CAPTURE_DIR,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rpc: Optional[RpcCall] = None,
        backoff: float = 1.0,
    ) -> "Engine":
        client = SupplierClient(transport=transport, backoff=backoff)
        probe_client = SupplierClient(transport=transport, timeout=config.PROBE_TIMEOUT, max_retries=1)
        catalog = CatalogStore(db_path)
        samples = AvailabilitySampleStore(db_path)
        verdicts = VerdictStore(db_path)
        captures = CaptureStore(capture_dir)

        importer = ImportRunner(client, catalog, captures)
        quota = QuotaRetryFlow(
            {
                OperationId.IMPORT_BRANCHES: importer.import_branches,
                OperationId.IMPORT_LOCATIONS: importer.import_locations,
                OperationId.IMPORT_LOCATION_LIST: importer.import_location_list,
            },
            capacity_increaser(client, catalog),
        )

        probe_transport = HttpProbeTransport(probe_client)
        addr = config.ENDPOINT_ADDR or ""
        harness = EndpointTestHarness(probe_transport, verdicts=verdicts)
        verification = VerificationOrchestrator(
            probe_transport,
            http_payload_fetch(probe_client),
            verdicts,
            addr=addr,
        )

        adapters = {}
        for adapter_type in ("xml", "json", "grpc"):
            try:
                adapters[adapter_type] = build_adapter(adapter_type, client=client, rpc=rpc)
            except ValueError as e:
                logger.debug(f"Availability adapter {adapter_type} unavailable: {e}")
        fetcher = AvailabilityFetcher(samples, adapters, captures)

        return cls(
            client=client,
            probe_client=probe_client,
            catalog=catalog,
            samples=samples,
            verdicts=verdicts,
            captures=captures,
            importer=importer,
            quota=quota,
            harness=harness,
            verification=verification,
            fetcher=fetcher,
        )

    async def initialize(self) -> None:
        await self.catalog.initialize()
        await self.samples.initialize()
        await self.verdicts.initialize()

    async def aclose(self) -> None:
        await self.client.aclose()
        await self.probe_client.aclose()
