"""Main entry point with CLI."""
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

import orjson

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.config import Config, config
from src.errors import EngineError, QuotaExceededError
from src.jobs.engine import Engine
from src.jobs.quota import OperationId
from src.logging_conf import setup_logging
from src.parse.models import AvailabilityCriteria

logger = logging.getLogger(__name__)

IMPORT_COMMANDS = {
    "import-branches": OperationId.IMPORT_BRANCHES,
    "import-locations": OperationId.IMPORT_LOCATIONS,
    "import-location-list": OperationId.IMPORT_LOCATION_LIST,
}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Supplier integration engine")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    parser.add_argument("--db", type=Path, default=None, help="SQLite database path")
    sub = parser.add_subparsers(dest="command", required=True)

    for name in IMPORT_COMMANDS:
        p = sub.add_parser(name, help=f"{name.replace('-', ' ').capitalize()} from the supplier")
        p.add_argument("--file", type=Path, default=None, help="Import a local payload instead of fetching")
        p.add_argument("--endpoint", default=None, help="Override the configured endpoint URL")
        p.add_argument("--yes", action="store_true", help="Increase capacity without asking on quota errors")
        if name == "import-location-list":
            p.add_argument("--request-root", default=None, help="Request root element name")
            p.add_argument("--account-id", default=None, help="Account identifier sent as RequestorID")

    p = sub.add_parser("test-endpoint", help="Probe the transport address")
    p.add_argument("--addr", default=None, help="Address to test (default ENDPOINT_ADDR)")
    p.add_argument(
        "--probes",
        nargs="*",
        default=["locations", "availability", "bookings"],
        help="Probes to run besides health",
    )

    p = sub.add_parser("fetch-availability", help="Fetch availability and store it as a sample")
    p.add_argument("--pickup", required=True, help="Pickup location code")
    p.add_argument("--dropoff", required=True, help="Return location code")
    p.add_argument("--pickup-at", required=True, help="Pickup datetime (ISO 8601)")
    p.add_argument("--dropoff-at", required=True, help="Return datetime (ISO 8601)")
    p.add_argument("--requestor-id", default=None)
    p.add_argument("--driver-age", type=int, default=None)
    p.add_argument("--citizen-country", default=None)
    p.add_argument("--adapter", choices=("xml", "json", "grpc"), default=None)
    p.add_argument("--file", type=Path, default=None, help="Use a local response instead of fetching")

    p = sub.add_parser("verify", help="Run the verification steps")
    p.add_argument("--addr", default=None, help="Address to verify (default ENDPOINT_ADDR)")

    sub.add_parser("status", help="Show the last stored verdicts")

    return parser.parse_args(argv)


def emit(result: Any) -> None:
    """Print a model (or plain data) as indented JSON."""
    if hasattr(result, "model_dump"):
        result = result.model_dump(mode="json", by_alias=True)
    sys.stdout.write(orjson.dumps(result, option=orjson.OPT_INDENT_2).decode() + "\n")


def _read_payload(path: Path | None) -> str | None:
    if path is None:
        return None
    return path.read_text(encoding="utf-8")


async def _run_import(engine: Engine, args: argparse.Namespace) -> None:
    params = {"payload": _read_payload(args.file), "endpoint": args.endpoint}
    if args.command == "import-location-list":
        params.update(request_root=args.request_root, account_id=args.account_id)

    try:
        emit(await engine.quota.run(IMPORT_COMMANDS[args.command], **params))
    except QuotaExceededError as e:
        payload = e.payload
        target = payload.subscribed_count + payload.need_to_add
        logger.warning(payload.message)
        confirmed = args.yes or input(f"Increase branch capacity to {target} and retry? [y/N] ").strip().lower() == "y"
        if not confirmed:
            engine.quota.decline()
            emit(e.to_dict())
            raise SystemExit(2)
        emit(await engine.quota.confirm())


async def run(args: argparse.Namespace) -> None:
    db_kwargs = {"db_path": args.db} if args.db else {}
    engine = Engine.create(**db_kwargs)
    await engine.initialize()
    try:
        if args.command in IMPORT_COMMANDS:
            await _run_import(engine, args)

        elif args.command == "test-endpoint":
            addr = args.addr or config.ENDPOINT_ADDR
            if not addr:
                raise ValueError("No --addr given and ENDPOINT_ADDR is not configured")
            emit(await engine.harness.run(addr, args.probes))

        elif args.command == "fetch-availability":
            criteria = AvailabilityCriteria(
                pickup_loc=args.pickup,
                dropoff_loc=args.dropoff,
                pickup_iso=args.pickup_at,
                dropoff_iso=args.dropoff_at,
                requestor_id=args.requestor_id,
                driver_age=args.driver_age,
                citizen_country=args.citizen_country,
                adapter_type=args.adapter or config.ADAPTER_TYPE,
            )
            emit(await engine.fetcher.fetch_and_store(criteria, payload=_read_payload(args.file)))

        elif args.command == "verify":
            emit(await engine.verification.run(args.addr))

        elif args.command == "status":
            last = await engine.verification.last_result()
            cached = await engine.harness.cached()
            emit(
                {
                    "lastVerification": last.model_dump(mode="json", by_alias=True) if last else None,
                    "lastEndpointTest": cached.model_dump(mode="json", by_alias=True) if cached else None,
                }
            )
    finally:
        await engine.aclose()


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        Config.validate(require_endpoints=False)
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(1)
    except EngineError as e:
        logger.error(f"{e.kind.value}: {e.message}")
        emit(e.to_dict())
        sys.exit(1)
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
