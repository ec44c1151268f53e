"""JSONL capture of unrecognized supplier payloads for later diagnosis."""
import logging
from pathlib import Path
from typing import Optional

import aiofiles
import orjson

from src.config import CAPTURE_DIR
from src.errors import FormatErrorPayload
from src.parse.models import EntityKind, utcnow

logger = logging.getLogger(__name__)


class CaptureStore:
    """Appends one redacted diagnostic line per unrecognized response."""

    def __init__(self, capture_dir: Path = CAPTURE_DIR):
        self.capture_dir = capture_dir
        self.capture_dir.mkdir(parents=True, exist_ok=True)

    def _get_capture_file(self, kind: EntityKind) -> Path:
        return self.capture_dir / f"{kind.value.lower()}.jsonl"

    async def capture(self, kind: EntityKind, source: Optional[str], error: FormatErrorPayload) -> None:
        """Write a capture line. The preview is already redacted and bounded."""
        line = {
            "captured_at": utcnow().isoformat(),
            "entity": kind.value,
            "source": source,
            **error.model_dump(mode="json"),
        }
        async with aiofiles.open(self._get_capture_file(kind), "ab") as f:
            await f.write(orjson.dumps(line) + b"\n")
        logger.info(f"Captured unrecognized {kind.value} payload from {source}")

    async def read(self, kind: EntityKind) -> list[dict]:
        capture_file = self._get_capture_file(kind)
        if not capture_file.exists():
            return []

        entries = []
        async with aiofiles.open(capture_file, "rb") as f:
            async for line in f:
                try:
                    entries.append(orjson.loads(line))
                except orjson.JSONDecodeError as e:
                    logger.warning(f"Error reading capture line: {e}")
        return entries
