"""Per-invocation audit trail.

Every tool invocation, including rejected ones, produces exactly one JSONL event on
stderr and, when configured, in an append-only file. Reasons pass through
`summarize_reason` so the bearer credential never reaches the trail.
"""

from __future__ import annotations

import json
import re
import sys
import time
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal

Outcome = Literal["succeeded", "failed", "denied", "error"]

_MAX_REASON_CHARS = 200

_TOKEN_RE = re.compile(r"(?i)\b(?:gh[pousr]_[A-Za-z0-9]+|github_pat_[A-Za-z0-9_]+|bearer\s+\S+)")


def new_correlation_id() -> str:
    return uuid.uuid4().hex


def redact_text(text: str) -> str:
    """Replace anything shaped like a GitHub credential with a marker."""
    if not isinstance(text, str):
        return "<non-string>"
    return _TOKEN_RE.sub("<redacted>", text)


def summarize_reason(text: str) -> str:
    """First non-blank line of a diagnostic, redacted and capped in length."""
    lines = [line for line in text.splitlines() if line.strip()]
    summary = redact_text(lines[0].strip()) if lines else ""
    if len(summary) > _MAX_REASON_CHARS:
        summary = summary[: _MAX_REASON_CHARS - 3] + "..."
    return summary


@dataclass(frozen=True, slots=True)
class AuditEvent:
    """One tool invocation as it appears in the trail."""

    timestamp: str
    correlation_id: str
    operation: str
    target_repo: str
    outcome: Outcome
    reason: str | None
    duration_ms: int | None

    def to_json(self) -> str:
        # Unset optional fields are left out rather than written as null.
        payload = {k: v for k, v in asdict(self).items() if v is not None}
        return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class AuditLogger:
    """JSONL writer with optional size-capped file sink.

    File sink problems are swallowed after the stderr line is written; auditing never
    fails a tool call.
    """

    def __init__(self, *, sink_path: Path | None, max_bytes: int = 5 * 1024 * 1024, max_backups: int = 2) -> None:
        self._sink_path = sink_path
        self._max_bytes = max_bytes
        self._max_backups = max_backups

    @staticmethod
    def _backup(sink: Path, index: int) -> Path:
        return sink.with_name(f"{sink.name}.{index}")

    def _shift_backups(self) -> None:
        sink = self._sink_path
        if sink is None or not sink.exists() or sink.stat().st_size < self._max_bytes:
            return
        if self._max_backups <= 0:
            sink.write_text("", encoding="utf-8")
            return
        self._backup(sink, self._max_backups).unlink(missing_ok=True)
        for index in reversed(range(1, self._max_backups)):
            older = self._backup(sink, index)
            if older.exists():
                older.replace(self._backup(sink, index + 1))
        sink.replace(self._backup(sink, 1))

    def _append(self, line: str) -> None:
        sink = self._sink_path
        if sink is None:
            return
        try:
            sink.parent.mkdir(parents=True, exist_ok=True)
            self._shift_backups()
            with sink.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        except OSError:  # pragma: no cover
            pass

    def write_event(self, event: AuditEvent) -> None:
        line = event.to_json()
        print(line, file=sys.stderr)
        self._append(line)

    def measure_start(self) -> float:
        return time.monotonic()

    def measure_duration_ms(self, start: float) -> int:
        return int((time.monotonic() - start) * 1000)


def build_event(
    *,
    correlation_id: str,
    operation: str,
    target_repo: str,
    outcome: Outcome,
    reason: str | None = None,
    duration_ms: int | None = None,
) -> AuditEvent:
    """Stamp an event with the current UTC time."""
    return AuditEvent(
        timestamp=datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        correlation_id=correlation_id,
        operation=operation,
        target_repo=target_repo,
        outcome=outcome,
        reason=reason,
        duration_ms=duration_ms,
    )
