"""Tests for the import flows against a temporary catalog."""
import httpx
import pytest
from lxml import etree

from src.errors import QuotaExceededError, SupplierConnectionError
from src.fetch.client import SupplierClient
from src.jobs.imports import ImportRunner
from src.parse.models import EntityKind, ResponseFormat
from src.store.capture import CaptureStore
from payloads import BRANCHES_JSON, LEGACY_DUMP


def _runner(catalog, tmp_path, handler=None):
    handler = handler or (lambda request: httpx.Response(404))
    client = SupplierClient(transport=httpx.MockTransport(handler), max_retries=1, backoff=0)
    return ImportRunner(client, catalog, CaptureStore(tmp_path / "captures"))


@pytest.mark.asyncio
async def test_import_locations_example(catalog, tmp_path):
    """The single wrapped location is imported."""
    runner = _runner(catalog, tmp_path)
    result = await runner.import_locations(
        payload='{"Locations":[{"unlocode":"GBMAN","country":"GB","place":"Manchester"}]}'
    )
    assert (result.total, result.imported, result.updated, result.skipped) == (1, 1, 0, 0)
    assert result.errors == []
    assert result.format is ResponseFormat.JSON_WRAPPED
    assert await catalog.count(EntityKind.LOCATION) == 1


@pytest.mark.asyncio
async def test_importing_twice_never_duplicates(catalog, tmp_path):
    """Second run of the same batch: nothing new, nothing changed."""
    runner = _runner(catalog, tmp_path)
    first = await runner.import_branches(payload=BRANCHES_JSON)
    second = await runner.import_branches(payload=BRANCHES_JSON)
    assert (first.imported, first.updated) == (2, 0)
    assert (second.imported, second.updated, second.skipped) == (0, 0, 2)
    assert await catalog.count(EntityKind.BRANCH) == 2


@pytest.mark.asyncio
async def test_changed_fields_are_updates(catalog, tmp_path):
    runner = _runner(catalog, tmp_path)
    await runner.import_branches(payload='[{"branchCode": "B1", "name": "Old"}]')
    result = await runner.import_branches(payload='[{"branchCode": "B1", "name": "New"}]')
    assert (result.imported, result.updated) == (0, 1)
    stored = await catalog.get_existing(EntityKind.BRANCH, ["B1"])
    assert stored["B1"].name == "New"


@pytest.mark.asyncio
async def test_fetches_configured_endpoint(catalog, tmp_path):
    seen = []

    def handler(request):
        seen.append(str(request.url))
        return httpx.Response(200, text=BRANCHES_JSON)

    runner = _runner(catalog, tmp_path, handler)
    result = await runner.import_branches(endpoint="http://supplier.test/branches")
    assert seen == ["http://supplier.test/branches"]
    assert result.imported == 2


@pytest.mark.asyncio
async def test_location_list_posts_legacy_request(catalog, tmp_path):
    """The legacy list request carries the configured root and account id."""
    bodies = []

    def handler(request):
        bodies.append(request.content)
        return httpx.Response(200, text=LEGACY_DUMP)

    runner = _runner(catalog, tmp_path, handler)
    result = await runner.import_location_list(
        endpoint="http://supplier.test/list",
        request_root="OTA_VehLocSearchRQ",
        account_id="ACC-1",
    )
    root = etree.fromstring(bodies[0])
    assert etree.QName(root).localname == "OTA_VehLocSearchRQ"
    requestor = root.find(".//{*}RequestorID")
    assert requestor.get("ID") == "ACC-1"
    assert result.format is ResponseFormat.LEGACY_DUMP
    assert result.imported == 2
    stored = await catalog.list_records(EntityKind.LOCATION)
    assert [loc.unlocode for loc in stored] == ["AEAUH", "AEDXB"]


@pytest.mark.asyncio
async def test_unrecognized_payload_is_reported_and_captured(catalog, tmp_path):
    runner = _runner(catalog, tmp_path)
    result = await runner.import_locations(payload='{"weird": {"shape": 1}}')
    assert result.total == 0
    assert result.format is ResponseFormat.UNKNOWN
    assert result.format_error.received_keys == ["weird"]
    captured = await runner.captures.read(EntityKind.LOCATION)
    assert len(captured) == 1
    assert captured[0]["received_keys"] == ["weird"]


@pytest.mark.asyncio
async def test_quota_checked_before_any_write(catalog, tmp_path):
    await catalog.set_subscribed_count(1)
    runner = _runner(catalog, tmp_path)
    with pytest.raises(QuotaExceededError) as exc_info:
        await runner.import_branches(payload=BRANCHES_JSON)

    payload = exc_info.value.payload
    assert (payload.current_count, payload.adding, payload.need_to_add, payload.subscribed_count) == (0, 2, 1, 1)
    assert await catalog.count(EntityKind.BRANCH) == 0


@pytest.mark.asyncio
async def test_updates_do_not_count_against_quota(catalog, tmp_path):
    runner = _runner(catalog, tmp_path)
    await runner.import_branches(payload=BRANCHES_JSON)
    await catalog.set_subscribed_count(2)
    result = await runner.import_branches(payload=BRANCHES_JSON.replace("Dubai Airport", "DXB Airport"))
    assert result.updated == 1


@pytest.mark.asyncio
async def test_connection_errors_propagate(catalog, tmp_path):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    runner = _runner(catalog, tmp_path, handler)
    with pytest.raises(SupplierConnectionError):
        await runner.import_locations(endpoint="http://supplier.test/locations")


@pytest.mark.asyncio
async def test_missing_endpoint_is_a_configuration_error(catalog, tmp_path, monkeypatch):
    from src.config import config

    monkeypatch.setattr(config, "LOCATIONS_ENDPOINT", None)
    runner = _runner(catalog, tmp_path)
    with pytest.raises(ValueError):
        await runner.import_locations()
