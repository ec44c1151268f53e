"""Multi-step connectivity verification with persisted verdicts."""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from src.config import config
from src.errors import VerificationInProgressError
from src.fetch.client import SupplierClient
from src.fetch.endpoints import probe_url
from src.jobs.probes import ProbeTransport
from src.parse.detector import detect_format
from src.parse.models import (
    CompanyRole,
    EntityKind,
    VerificationResult,
    VerificationState,
    VerificationStep,
)
from src.parse.normalizer import normalize
from src.store.verdicts import VerdictStore

logger = logging.getLogger(__name__)

STEPS_BY_ROLE = {
    CompanyRole.SOURCE: ("health", "locations", "availability", "bookings"),
    CompanyRole.AGENT: ("health", "availability", "bookings"),
}

PayloadFetch = Callable[[str, str], Awaitable[Any]]


def http_payload_fetch(client: SupplierClient) -> PayloadFetch:
    """Raw body of ``<addr>/<step>`` for the data-bearing steps."""

    async def fetch(step: str, addr: str) -> str:
        return await client.get_text(probe_url(addr, step))

    return fetch


class VerificationOrchestrator:
    """
    IDLE -> RUNNING -> PASSED | FAILED.

    Steps run one at a time in a fixed order and every step is recorded,
    whatever happened before it. A run cannot start while another is
    RUNNING; re-running after a verdict is always allowed.
    """

    def __init__(
        self,
        transport: ProbeTransport,
        fetch_payload: PayloadFetch,
        verdicts: VerdictStore,
        addr: Optional[str] = None,
        company_id: Optional[str] = None,
        role: Optional[CompanyRole] = None,
        timeout: Optional[float] = None,
    ):
        self.transport = transport
        self.fetch_payload = fetch_payload
        self.verdicts = verdicts
        self.addr = addr or config.ENDPOINT_ADDR or ""
        self.company_id = company_id or config.COMPANY_ID
        self.role = CompanyRole(role or config.COMPANY_ROLE)
        self.timeout = timeout or config.PROBE_TIMEOUT
        self.state = VerificationState.IDLE

    @property
    def steps(self) -> tuple[str, ...]:
        return STEPS_BY_ROLE[self.role]

    async def _probe_step(self, name: str, addr: str) -> tuple[bool, str]:
        result = await self.transport.probe(name, addr)
        status = (result or {}).get("status")
        return True, f"{name} responded" + (f" ({status})" if status is not None else "")

    async def _locations_step(self, addr: str) -> tuple[bool, str]:
        detection = detect_format(await self.fetch_payload("locations", addr), EntityKind.LOCATION)
        if not detection.recognized:
            return False, f"Unrecognized locations format; received keys: {detection.received_keys}"
        normalization = normalize(detection)
        valid = len(normalization.records)
        detail = f"{valid} valid locations ({detection.format.value})"
        if normalization.errors:
            detail += f", {len(normalization.errors)} invalid"
        return valid > 0, detail

    async def _availability_step(self, addr: str) -> tuple[bool, str]:
        detection = detect_format(await self.fetch_payload("availability", addr), EntityKind.VEHICLE_OFFER)
        if not detection.recognized:
            return False, f"Unrecognized availability format; received keys: {detection.received_keys}"
        normalization = normalize(detection)
        return True, f"{len(normalization.records)} offers ({detection.format.value})"

    async def _run_step(self, name: str, addr: str) -> VerificationStep:
        handlers = {
            "locations": self._locations_step,
            "availability": self._availability_step,
        }
        handler = handlers.get(name)
        call = handler(addr) if handler else self._probe_step(name, addr)
        try:
            passed, detail = await asyncio.wait_for(call, timeout=self.timeout)
        except asyncio.TimeoutError:
            passed, detail = False, f"Timed out after {self.timeout:g}s"
        except Exception as e:
            passed, detail = False, str(e) or type(e).__name__
        logger.info(f"[VERIFY] {name}: {'passed' if passed else 'failed'} - {detail}")
        return VerificationStep(name=name, passed=passed, detail=detail)

    async def run(self, addr: Optional[str] = None) -> VerificationResult:
        """Run every step against ``addr`` (default: the configured address)."""
        if self.state is VerificationState.RUNNING:
            raise VerificationInProgressError("A verification run is already in progress")
        addr = addr or self.addr

        self.state = VerificationState.RUNNING
        logger.info(f"[VERIFY] Starting {self.role.value} verification for {self.company_id} against {addr}")
        try:
            steps = [await self._run_step(name, addr) for name in self.steps]
            result = VerificationResult(
                company_id=self.company_id,
                kind=self.role,
                passed=all(step.passed for step in steps),
                steps=steps,
            )
            await self.verdicts.add_verification(result)
        except BaseException:
            self.state = VerificationState.FAILED
            raise

        self.state = VerificationState.PASSED if result.passed else VerificationState.FAILED
        logger.info(f"[VERIFY] {self.company_id}: {self.state.value}")
        return result

    async def last_result(self) -> Optional[VerificationResult]:
        """Most recent stored verdict, re-read from the store."""
        return await self.verdicts.last_verification(self.company_id)

    async def history(self) -> list[VerificationResult]:
        return await self.verdicts.history(self.company_id)
