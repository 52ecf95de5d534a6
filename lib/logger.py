"""
Request Logger - Records generation requests for debugging and monitoring.

Keeps the most recent generation calls in memory and serves them from GET /logs.
Only a short preview of the source test is kept, and credentials never enter
an entry.
"""

import time
import uuid
from collections import OrderedDict
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Optional

PREVIEW_CHARS = 100


@dataclass
class GenerationLogEntry:
    """One /api/generate call, filled in as it progresses."""
    id: str
    endpoint: str
    mode: str
    prompt_preview: str
    exercise_count: int
    language: str
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    status: str = "pending"
    response_time_ms: Optional[int] = None
    model_calls: int = 0
    answer_key_size: Optional[int] = None
    error: Optional[str] = None
    started_at: float = field(default_factory=time.monotonic, repr=False)

    def to_dict(self) -> dict:
        data = asdict(self)
        data.pop("started_at")
        return data


class RequestLogger:
    """Bounded in-memory log of generation requests; the oldest entry is evicted first."""

    def __init__(self, max_logs: int = 1000):
        self.max_logs = max_logs
        self._entries: OrderedDict[str, GenerationLogEntry] = OrderedDict()

    def log_request(
        self,
        endpoint: str,
        mode: str,
        prompt_preview: str = "",
        exercise_count: int = 0,
        language: str = "",
    ) -> str:
        """
        Record an incoming generation request.

        Args:
            endpoint: The API endpoint called
            mode: "mock" or "prod"
            prompt_preview: Source LaTeX; only the first 100 chars are kept
            exercise_count: Number of exercises requested
            language: Requested output language

        Returns:
            Log ID for correlating with the response
        """
        log_id = uuid.uuid4().hex[:8]
        self._entries[log_id] = GenerationLogEntry(
            id=log_id,
            endpoint=endpoint,
            mode=mode,
            prompt_preview=prompt_preview[:PREVIEW_CHARS],
            exercise_count=exercise_count,
            language=language,
        )
        while len(self._entries) > self.max_logs:
            self._entries.popitem(last=False)
        return log_id

    def log_response(
        self,
        log_id: str,
        success: bool,
        model_calls: int = 0,
        answer_key_size: Optional[int] = None,
        error: Optional[str] = None,
    ) -> None:
        """
        Close out an entry. Unknown or already evicted IDs are ignored.

        Args:
            log_id: The ID returned by log_request
            success: Whether the request succeeded
            model_calls: Calls made to the model, retries included
            answer_key_size: Number of answer-key entries returned
            error: Error message if failed
        """
        entry = self._entries.get(log_id)
        if entry is None:
            return
        entry.response_time_ms = int((time.monotonic() - entry.started_at) * 1000)
        entry.status = "success" if success else "error"
        entry.model_calls = model_calls
        entry.answer_key_size = answer_key_size
        entry.error = error

    def get_logs(self, limit: int = 100) -> list[dict]:
        """Up to `limit` entries, most recent first."""
        recent = list(reversed(self._entries.values()))[:limit]
        return [entry.to_dict() for entry in recent]

    def clear_logs(self) -> None:
        self._entries.clear()
