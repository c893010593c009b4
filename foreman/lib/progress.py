"""
Append-only activity log (ai/progress.log).

One line per state-changing command:
    [2026-01-05T10:12:00] VERIFY auth.login: verdict=pass
"""

import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from .constants import PROGRESS_LOG_FILE

ENTRY_TYPES = ("VERIFY", "STEP", "CHANGE", "FAIL", "IMPACT")

_LINE_PATTERN = re.compile(r'^\[(?P<ts>[^\]]+)\] (?P<type>[A-Z]+)(?: (?P<feature>\S+))?: (?P<summary>.*)$')


@dataclass
class ProgressEntry:
    timestamp: datetime
    entry_type: str
    summary: str
    feature_id: str | None = None

    def format(self) -> str:
        subject = f" {self.feature_id}" if self.feature_id else ""
        return f"[{self.timestamp.isoformat(timespec='seconds')}] {self.entry_type}{subject}: {self.summary}"


def append_progress_log(cwd: Path, entry_type: str, summary: str, feature_id: str | None = None) -> ProgressEntry:
    """Append one entry to the progress log and return it."""
    if entry_type not in ENTRY_TYPES:
        raise ValueError(f"Unknown progress entry type: {entry_type}")

    entry = ProgressEntry(
        timestamp=datetime.now(),
        entry_type=entry_type,
        summary=" ".join(summary.split()),
        feature_id=feature_id,
    )
    log_path = cwd / PROGRESS_LOG_FILE
    log_path.parent.mkdir(parents=True, exist_ok=True)
    with log_path.open("a") as f:
        f.write(entry.format() + "\n")
    return entry


def read_recent_entries(cwd: Path, limit: int = 5) -> list[ProgressEntry]:
    """Return the most recent entries, newest last. Unparseable lines are skipped."""
    log_path = cwd / PROGRESS_LOG_FILE
    if not log_path.exists():
        return []

    entries = []
    for line in log_path.read_text().splitlines():
        match = _LINE_PATTERN.match(line.strip())
        if not match:
            continue
        try:
            ts = datetime.fromisoformat(match["ts"])
        except ValueError:
            continue
        entries.append(ProgressEntry(
            timestamp=ts,
            entry_type=match["type"],
            summary=match["summary"],
            feature_id=match["feature"],
        ))
    return entries[-limit:] if limit else entries
