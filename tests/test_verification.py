"""Tests for the verification state machine and its persisted history."""
import asyncio

import pytest

from src.errors import VerificationInProgressError
from src.jobs.verification import VerificationOrchestrator
from src.parse.models import CompanyRole, VerificationState
from payloads import LOCATIONS_XML, offers_json


class FakeTransport:
    def __init__(self, failing=(), gate=None):
        self.failing = set(failing)
        self.gate = gate
        self.calls = []

    async def probe(self, name, addr):
        self.calls.append((name, addr))
        if self.gate is not None:
            await self.gate.wait()
        if name in self.failing:
            raise ConnectionError(f"{name} refused")
        return {"status": "ok"}


def _payloads(locations=LOCATIONS_XML, availability=None, seen=None):
    data = {"locations": locations, "availability": availability or offers_json()}

    async def fetch(step, addr):
        if seen is not None:
            seen.append((step, addr))
        return data[step]

    return fetch


def _orchestrator(verdicts, transport=None, fetch=None, role=CompanyRole.SOURCE):
    return VerificationOrchestrator(
        transport or FakeTransport(),
        fetch or _payloads(),
        verdicts,
        addr="supplier.test",
        company_id="co-1",
        role=role,
        timeout=1,
    )


@pytest.mark.asyncio
async def test_source_run_passes(verdicts):
    orchestrator = _orchestrator(verdicts)
    result = await orchestrator.run()

    assert result.passed
    assert [s.name for s in result.steps] == ["health", "locations", "availability", "bookings"]
    assert orchestrator.state is VerificationState.PASSED
    assert result.steps[1].detail.startswith("2 valid locations")


@pytest.mark.asyncio
async def test_every_step_recorded_after_a_failure(verdicts):
    orchestrator = _orchestrator(verdicts, transport=FakeTransport(failing={"health"}))
    result = await orchestrator.run()

    assert not result.passed
    assert [s.passed for s in result.steps] == [False, True, True, True]
    assert result.steps[0].detail == "health refused"
    assert orchestrator.state is VerificationState.FAILED


@pytest.mark.asyncio
async def test_locations_need_a_valid_record(verdicts):
    fetch = _payloads(locations='{"Locations": [{"place": "Nowhere"}]}')
    result = await _orchestrator(verdicts, fetch=fetch).run()
    assert not result.passed
    assert result.steps[1].passed is False


@pytest.mark.asyncio
async def test_unrecognized_availability_fails_step(verdicts):
    fetch = _payloads(availability="<html>login</html>")
    result = await _orchestrator(verdicts, fetch=fetch).run()
    assert [s.passed for s in result.steps] == [True, True, False, True]


@pytest.mark.asyncio
async def test_agent_role_skips_locations(verdicts):
    result = await _orchestrator(verdicts, role=CompanyRole.AGENT).run()
    assert result.kind is CompanyRole.AGENT
    assert [s.name for s in result.steps] == ["health", "availability", "bookings"]


@pytest.mark.asyncio
async def test_second_run_while_running_is_rejected(verdicts):
    gate = asyncio.Event()
    orchestrator = _orchestrator(verdicts, transport=FakeTransport(gate=gate))

    first = asyncio.create_task(orchestrator.run())
    await asyncio.sleep(0)
    assert orchestrator.state is VerificationState.RUNNING
    with pytest.raises(VerificationInProgressError):
        await orchestrator.run()

    gate.set()
    result = await first
    assert result.passed

    # Re-running after a verdict is allowed
    again = await orchestrator.run()
    assert again.passed


@pytest.mark.asyncio
async def test_history_is_newest_first_and_capped(verdicts):
    orchestrator = _orchestrator(verdicts)
    failing = _orchestrator(verdicts, transport=FakeTransport(failing={"bookings"}))

    for _ in range(3):
        await orchestrator.run()
    await failing.run()

    history = await orchestrator.history()
    assert len(history) == 3
    assert [r.passed for r in history] == [False, True, True]

    last = await orchestrator.last_result()
    assert last.passed is False
    assert last.steps[-1].name == "bookings"


@pytest.mark.asyncio
async def test_rejected_run_does_not_retarget_the_running_one(verdicts):
    """A second run asking for another address is refused and changes nothing."""
    gate = asyncio.Event()
    transport = FakeTransport(gate=gate)
    fetched = []
    orchestrator = _orchestrator(verdicts, transport=transport, fetch=_payloads(seen=fetched))

    first = asyncio.create_task(orchestrator.run("a.test"))
    await asyncio.sleep(0)
    with pytest.raises(VerificationInProgressError):
        await orchestrator.run("b.test")

    gate.set()
    await first
    assert {addr for _, addr in transport.calls} == {"a.test"}
    assert {addr for _, addr in fetched} == {"a.test"}
    assert orchestrator.addr == "supplier.test"


@pytest.mark.asyncio
async def test_run_defaults_to_configured_address(verdicts):
    transport = FakeTransport()
    await _orchestrator(verdicts, transport=transport).run()
    assert {addr for _, addr in transport.calls} == {"supplier.test"}
