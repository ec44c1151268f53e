"""Configuration management from environment variables."""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file
load_dotenv()

# Project root
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = PROJECT_ROOT / "data"
CAPTURE_DIR = DATA_DIR / "captures"
STATE_DB = DATA_DIR / "state.db"

# Ensure directories exist
DATA_DIR.mkdir(exist_ok=True)
CAPTURE_DIR.mkdir(exist_ok=True)


class Config:
    """Application configuration."""

    # Supplier endpoints (one per entity kind)
    LOCATIONS_ENDPOINT: str | None = os.getenv("LOCATIONS_ENDPOINT")
    BRANCHES_ENDPOINT: str | None = os.getenv("BRANCHES_ENDPOINT")
    LOCATION_LIST_ENDPOINT: str | None = os.getenv("LOCATION_LIST_ENDPOINT")
    AVAILABILITY_ENDPOINT: str | None = os.getenv("AVAILABILITY_ENDPOINT")
    ENDPOINT_ADDR: str | None = os.getenv("ENDPOINT_ADDR")
    ADAPTER_TYPE: str = os.getenv("ADAPTER_TYPE", "xml")

    # Legacy location list endpoint
    LOCATION_LIST_REQUEST_ROOT: str = os.getenv("LOCATION_LIST_REQUEST_ROOT", "OTA_VehLocSearchRQ")
    LOCATION_LIST_RESPONSE_ROOT: str = os.getenv("LOCATION_LIST_RESPONSE_ROOT", "OTA_VehLocSearchRS")
    ACCOUNT_ID: str | None = os.getenv("ACCOUNT_ID")

    # Company
    COMPANY_ID: str = os.getenv("COMPANY_ID", "default")
    COMPANY_ROLE: str = os.getenv("COMPANY_ROLE", "SOURCE")

    # Dashboard API (capacity changes)
    API_BASE_URL: str = os.getenv("API_BASE_URL", "http://localhost:8080")
    API_TOKEN: str | None = os.getenv("API_TOKEN")

    # Transport
    TIMEOUT: int = int(os.getenv("TIMEOUT", "20"))
    MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "3"))
    PROBE_TIMEOUT: float = float(os.getenv("PROBE_TIMEOUT", "10"))

    # Diagnostics and history
    PREVIEW_CHARS: int = int(os.getenv("PREVIEW_CHARS", "3000"))
    VERIFICATION_HISTORY_LIMIT: int = int(os.getenv("VERIFICATION_HISTORY_LIMIT", "20"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # API Security
    API_KEY: str | None = os.getenv("API_KEY")

    @classmethod
    def validate(cls, require_endpoints: bool = True) -> None:
        """Validate required configuration."""
        errors = []
        if require_endpoints:
            if not cls.ENDPOINT_ADDR:
                errors.append("ENDPOINT_ADDR is required")
            if not (cls.LOCATIONS_ENDPOINT or cls.BRANCHES_ENDPOINT or cls.LOCATION_LIST_ENDPOINT):
                errors.append("At least one of LOCATIONS_ENDPOINT, BRANCHES_ENDPOINT or LOCATION_LIST_ENDPOINT is required")
        if cls.ADAPTER_TYPE not in ("xml", "json", "grpc"):
            errors.append(f"ADAPTER_TYPE must be xml, json or grpc (got {cls.ADAPTER_TYPE!r})")
        if cls.COMPANY_ROLE not in ("SOURCE", "AGENT"):
            errors.append(f"COMPANY_ROLE must be SOURCE or AGENT (got {cls.COMPANY_ROLE!r})")
        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")


config = Config()
