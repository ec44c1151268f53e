"""FastAPI main application."""
import logging
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader
from pydantic import BaseModel, Field

from src.config import Config, config
from src.errors import (
    EngineError,
    ErrorKind,
    NoPendingRetryError,
    VerificationInProgressError,
)
from src.jobs.engine import Engine
from src.jobs.quota import OperationId, PendingRetry
from src.logging_conf import setup_logging
from src.parse.models import (
    AvailabilityCriteria,
    EndpointTestResult,
    ImportResult,
    StoreOutcome,
    VerificationResult,
    VerificationState,
    utcnow,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Supplier Integration Engine API", version="0.1.0")

# API Key security (if configured)
API_KEY_HEADER = APIKeyHeader(name="X-API-KEY", auto_error=False)


def verify_api_key(api_key: str = Depends(API_KEY_HEADER)) -> bool:
    """Verify API key if configured."""
    expected_key = config.API_KEY
    if expected_key:
        if not api_key or api_key != expected_key:
            raise HTTPException(status_code=403, detail="Invalid API key")
    return True


# Initialize components
engine = Engine.create()

STATUS_BY_KIND = {
    ErrorKind.QUOTA_EXCEEDED: 409,
    ErrorKind.NOT_APPROVED: 403,
    ErrorKind.CONNECTION_ERROR: 502,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.UPSTREAM_ERROR: 502,
}


@app.on_event("startup")
async def startup():
    """Initialize on startup."""
    setup_logging()
    await engine.initialize()


@app.on_event("shutdown")
async def shutdown():
    await engine.aclose()


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    if isinstance(exc, VerificationInProgressError):
        status_code = 409
    elif isinstance(exc, NoPendingRetryError):
        status_code = 404
    else:
        status_code = STATUS_BY_KIND.get(exc.kind, 500)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(
        status_code=400,
        content={"error": ErrorKind.VALIDATION_ERROR.value, "message": str(exc), "details": {}},
    )


class ImportRequest(BaseModel):
    """Optional inline payload; otherwise the configured endpoint is fetched."""

    payload: Optional[Any] = None
    endpoint: Optional[str] = None


class LocationListRequest(ImportRequest):
    request_root: Optional[str] = None
    account_id: Optional[str] = None


class EndpointTestRequest(BaseModel):
    addr: Optional[str] = None
    probes: list[str] = Field(default_factory=lambda: ["locations", "availability", "bookings"])


class AvailabilityRequest(BaseModel):
    criteria: AvailabilityCriteria
    payload: Optional[Any] = None


class VerificationRequest(BaseModel):
    addr: Optional[str] = None


@app.get("/health")
async def health():
    """Health check endpoint (no auth required)."""
    return {"status": "ok", "timestamp": utcnow().isoformat()}


@app.post("/imports/branches", response_model=ImportResult)
async def import_branches(request: ImportRequest, _: bool = Depends(verify_api_key)):
    return await engine.quota.run(OperationId.IMPORT_BRANCHES, payload=request.payload, endpoint=request.endpoint)


@app.post("/imports/locations", response_model=ImportResult)
async def import_locations(request: ImportRequest, _: bool = Depends(verify_api_key)):
    return await engine.quota.run(OperationId.IMPORT_LOCATIONS, payload=request.payload, endpoint=request.endpoint)


@app.post("/imports/location-list", response_model=ImportResult)
async def import_location_list(request: LocationListRequest, _: bool = Depends(verify_api_key)):
    return await engine.quota.run(
        OperationId.IMPORT_LOCATION_LIST,
        payload=request.payload,
        endpoint=request.endpoint,
        request_root=request.request_root,
        account_id=request.account_id,
    )


@app.post("/endpoints/test", response_model=EndpointTestResult)
async def test_endpoint(request: EndpointTestRequest, _: bool = Depends(verify_api_key)):
    addr = request.addr or config.ENDPOINT_ADDR
    if not addr:
        raise ValueError("No endpoint address given and ENDPOINT_ADDR is not configured")
    return await engine.harness.run(addr, request.probes)


@app.get("/endpoints/test", response_model=EndpointTestResult)
async def cached_endpoint_test(addr: Optional[str] = None, _: bool = Depends(verify_api_key)):
    """Last test result while it is still valid for the configured address."""
    result = await engine.harness.cached(addr)
    if result is None:
        raise HTTPException(status_code=404, detail="No endpoint test for the current address")
    return result


@app.post("/availability/fetch", response_model=StoreOutcome)
async def fetch_availability(request: AvailabilityRequest, _: bool = Depends(verify_api_key)):
    return await engine.fetcher.fetch_and_store(request.criteria, payload=request.payload)


@app.post("/verification/run", response_model=VerificationResult)
async def run_verification(request: Optional[VerificationRequest] = None, _: bool = Depends(verify_api_key)):
    return await engine.verification.run(request.addr if request else None)


@app.get("/verification/status")
async def verification_status(_: bool = Depends(verify_api_key)):
    last = await engine.verification.last_result()
    state = engine.verification.state
    if state is VerificationState.IDLE and last is not None:
        state = VerificationState.PASSED if last.passed else VerificationState.FAILED
    return {
        "state": state.value,
        "last": last.model_dump(mode="json", by_alias=True) if last else None,
    }


@app.get("/verification/history", response_model=list[VerificationResult])
async def verification_history(_: bool = Depends(verify_api_key)):
    return await engine.verification.history()


@app.get("/quota/pending", response_model=Optional[PendingRetry])
async def quota_pending(_: bool = Depends(verify_api_key)):
    return engine.quota.pending


@app.post("/quota/confirm", response_model=ImportResult)
async def quota_confirm(_: bool = Depends(verify_api_key)):
    return await engine.quota.confirm()


@app.post("/quota/decline")
async def quota_decline(_: bool = Depends(verify_api_key)):
    declined = engine.quota.decline()
    return {"declined": declined is not None}


if __name__ == "__main__":
    import uvicorn
    Config.validate()
    uvicorn.run(app, host="0.0.0.0", port=8000)
