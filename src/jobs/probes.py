"""Connectivity probes against a supplier transport address."""
import asyncio
import logging
import time
from typing import Any, Iterable, Optional, Protocol

from src.config import config
from src.fetch.client import SupplierClient, response_body
from src.fetch.endpoints import PROBE_NAMES, probe_url
from src.parse.models import EndpointProbeResult, EndpointTestResult
from src.store.verdicts import VerdictStore

logger = logging.getLogger(__name__)


class ProbeFailed(Exception):
    """The endpoint answered, but not with a healthy response."""


class ProbeTransport(Protocol):
    async def probe(self, name: str, addr: str) -> Optional[dict[str, Any]]:
        """Issue one probe call; raise on failure, return a result summary on success."""
        ...


class HttpProbeTransport:
    """Probes as plain HTTP GETs on ``<addr>/<probe>`` (paths can be overridden)."""

    def __init__(self, client: Optional[SupplierClient] = None, paths: Optional[dict[str, str]] = None):
        # One attempt per probe; the harness owns the time budget
        self.client = client or SupplierClient(timeout=config.PROBE_TIMEOUT, max_retries=1)
        self.paths = paths

    async def probe(self, name: str, addr: str) -> Optional[dict[str, Any]]:
        response = await self.client.request("GET", probe_url(addr, name, self.paths))
        body = response_body(response)

        if name == "health":
            if isinstance(body, dict):
                if body.get("ok") is False:
                    raise ProbeFailed(f"Health check reported not ok (status={body.get('status')})")
                return {"status": str(body.get("status") or "ok")}
            return {"status": "ok"}

        summary: dict[str, Any] = {"status": response.status_code}
        if isinstance(body, list):
            summary["items"] = len(body)
        return summary

    async def aclose(self) -> None:
        await self.client.aclose()


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class EndpointTestHarness:
    """
    Runs the requested probes independently against one address.

    Health always runs. Each probe has its own timeout and its own failure
    record; overall ``ok`` is the AND of every probe that ran.
    """

    def __init__(
        self,
        transport: ProbeTransport,
        timeout: Optional[float] = None,
        verdicts: Optional[VerdictStore] = None,
        company_id: Optional[str] = None,
    ):
        self.transport = transport
        self.timeout = timeout or config.PROBE_TIMEOUT
        self.verdicts = verdicts
        self.company_id = company_id or config.COMPANY_ID

    async def _run_probe(self, name: str, addr: str) -> EndpointProbeResult:
        start = time.perf_counter()
        try:
            result = await asyncio.wait_for(self.transport.probe(name, addr), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"[PROBE] {name} timed out after {self.timeout:g}s")
            return EndpointProbeResult(ok=False, ms=_elapsed_ms(start), error=f"Timed out after {self.timeout:g}s")
        except Exception as e:
            logger.warning(f"[PROBE] {name} failed: {e}")
            return EndpointProbeResult(ok=False, ms=_elapsed_ms(start), error=str(e) or type(e).__name__)
        return EndpointProbeResult(ok=True, ms=_elapsed_ms(start), result=result)

    async def run(self, addr: str, probes: Iterable[str] = ()) -> EndpointTestResult:
        requested = set(probes)
        unknown = requested - set(PROBE_NAMES)
        if unknown:
            raise ValueError(f"Unknown probes: {', '.join(sorted(unknown))}")
        tested = [name for name in PROBE_NAMES if name == "health" or name in requested]

        logger.info(f"[PROBE] Testing {addr}: {', '.join(tested)}")
        start = time.perf_counter()
        outcomes = await asyncio.gather(*(self._run_probe(name, addr) for name in tested))

        probe_map: dict[str, Optional[EndpointProbeResult]] = {name: None for name in PROBE_NAMES}
        probe_map.update(zip(tested, outcomes))

        result = EndpointTestResult(
            ok=all(outcome.ok for outcome in outcomes),
            addr=addr,
            total_ms=_elapsed_ms(start),
            probes=probe_map,
            tested=tested,
        )
        logger.info(f"[PROBE] {addr}: ok={result.ok} in {result.total_ms}ms")

        if self.verdicts:
            await self.verdicts.save_endpoint_test(self.company_id, result)
        return result

    async def cached(self, current_address: Optional[str] = None) -> Optional[EndpointTestResult]:
        """Last stored result, if it was run against the currently configured address."""
        if not self.verdicts:
            return None
        address = current_address if current_address is not None else config.ENDPOINT_ADDR
        return await self.verdicts.cached_endpoint_test(self.company_id, address)
