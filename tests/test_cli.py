"""Tests for the command line entry point (local payload files only)."""
import asyncio

import orjson
import pytest

from src.main import main, parse_args
from src.store.catalog import CatalogStore
from payloads import BRANCHES_JSON, offers_json


def _json_out(capsys):
    return orjson.loads(capsys.readouterr().out)


def _limit_capacity(db_path, count):
    async def setup():
        catalog = CatalogStore(db_path)
        await catalog.initialize()
        await catalog.set_subscribed_count(count)

    asyncio.run(setup())


def test_parse_args_defaults():
    args = parse_args(["test-endpoint"])
    assert args.command == "test-endpoint"
    assert args.probes == ["locations", "availability", "bookings"]


def test_import_from_file(tmp_path, capsys):
    payload = tmp_path / "locations.json"
    payload.write_text('{"Locations":[{"unlocode":"GBMAN","country":"GB","place":"Manchester"}]}')

    main(["--db", str(tmp_path / "state.db"), "import-locations", "--file", str(payload)])
    result = _json_out(capsys)
    assert (result["total"], result["imported"], result["skipped"]) == (1, 1, 0)


def test_quota_declined_exits_without_writing(tmp_path, capsys, monkeypatch):
    db_path = tmp_path / "state.db"
    _limit_capacity(db_path, 1)
    payload = tmp_path / "branches.json"
    payload.write_text(BRANCHES_JSON)
    monkeypatch.setattr("builtins.input", lambda prompt: "n")

    with pytest.raises(SystemExit) as exc_info:
        main(["--db", str(db_path), "import-branches", "--file", str(payload)])
    assert exc_info.value.code == 2
    assert _json_out(capsys)["error"] == "QUOTA_EXCEEDED"


def test_fetch_availability_from_file(tmp_path, capsys):
    response = tmp_path / "offers.json"
    response.write_bytes(orjson.dumps(offers_json()))
    argv = [
        "--db", str(tmp_path / "state.db"),
        "fetch-availability",
        "--pickup", "GBMAN",
        "--dropoff", "GBMAN",
        "--pickup-at", "2026-11-01T10:00:00",
        "--dropoff-at", "2026-11-05T10:00:00",
        "--adapter", "json",
        "--file", str(response),
    ]

    main(argv)
    assert _json_out(capsys)["isNew"] is True
    main(argv)
    assert _json_out(capsys)["duplicate"] is True


def test_status_without_history(tmp_path, capsys):
    main(["--db", str(tmp_path / "state.db"), "status"])
    assert _json_out(capsys) == {"lastVerification": None, "lastEndpointTest": None}
