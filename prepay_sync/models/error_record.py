from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the submission error log.

One record is written per extract row whose submission failed after all
retries. The JSON Lines schema is fixed: no extra keys are ever emitted.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        partition: Company code of the extract file
        file: Extract file name being replayed
        accounting_document: Accounting document of the failed row
        error_type: Error classification in UPPER_SNAKE_CASE format
        status: Remote HTTP status, or -1 when no response was received
        message: Error message or response body excerpt
    """
    timestamp: str
    partition: str
    file: str
    accounting_document: str
    error_type: str
    status: int
    message: str

    @staticmethod
    def create(
        partition: str,
        file: str,
        accounting_document: str | None,
        error_type: str,
        message: str,
        status: int | None = None,
    ) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            partition=partition,
            file=file,
            accounting_document=accounting_document or "",
            error_type=error_type,
            status=-1 if status is None else status,
            message=message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
