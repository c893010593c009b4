"""
Verification history (ai/verification/).

Layout:
    ai/verification/index.json              latest run + verdict per feature
    ai/verification/<feature>/001.json      one immutable record per run
    ai/verification/<feature>/001.md        human-readable report

Run files are the source of truth. The index is rewritten on every save
and, when it disagrees with the files, re-derived from them.
"""

import hashlib
import json
import logging
import re
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from foreman.lib.constants import VERIFICATION_DIR
from foreman.lib.validate import validate_file, validate_before_write, ValidationError
from foreman.verifier.types import VerificationResult, VERDICTS

logger = logging.getLogger(__name__)

INDEX_FILE = "index.json"
_RUN_FILE = re.compile(r'^(\d{3,})\.json$')
_UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9_.\-]')


@dataclass(frozen=True)
class StoredRun:
    run_number: int
    result: VerificationResult


def _store_dir(cwd: Path) -> Path:
    return cwd / VERIFICATION_DIR


def _dir_name(feature_id: str) -> str:
    """Directory name for a feature ID, distinct for distinct IDs.

    Safe IDs are used as-is. Anything else is sanitised and suffixed with
    `~` plus a hash of the raw ID; `~` never survives in a safe ID.
    """
    safe = _UNSAFE_CHARS.sub("_", feature_id)
    if safe == feature_id:
        return safe
    digest = hashlib.sha1(feature_id.encode("utf-8")).hexdigest()[:8]
    return f"{safe}~{digest}"


def _feature_dir(cwd: Path, feature_id: str) -> Path:
    return _store_dir(cwd) / _dir_name(feature_id)


def format_run_number(run_number: int) -> str:
    return f"{run_number:03d}"


def _run_numbers(feature_dir: Path) -> list[int]:
    if not feature_dir.is_dir():
        return []
    numbers = []
    for path in feature_dir.iterdir():
        match = _RUN_FILE.match(path.name)
        if match:
            numbers.append(int(match.group(1)))
    return sorted(numbers)


def get_next_run_number(cwd: Path, feature_id: str) -> int:
    numbers = _run_numbers(_feature_dir(cwd, feature_id))
    return numbers[-1] + 1 if numbers else 1


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


# --- index -----------------------------------------------------------------

def _empty_index() -> dict:
    return {"updatedAt": _now_iso(), "features": {}}


def load_index(cwd: Path) -> Optional[dict]:
    """Load the index, or None if it is missing or unreadable."""
    path = _store_dir(cwd) / INDEX_FILE
    if not path.exists():
        return None
    try:
        return validate_file(path, "verification_index")
    except ValidationError as e:
        logger.warning(f"[STORE] Ignoring unreadable verification index: {e}")
        return None


def _save_index(cwd: Path, index: dict) -> None:
    path = _store_dir(cwd) / INDEX_FILE
    index["updatedAt"] = _now_iso()
    validate_before_write(index, "verification_index", path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(index, indent=2) + "\n")


def _summary(result: VerificationResult, run_number: int, total_runs: int) -> dict:
    return {
        "latestRun": run_number,
        "verdict": result.verdict,
        "timestamp": result.timestamp,
        "totalRuns": total_runs,
    }


# --- runs ------------------------------------------------------------------

def _load_run(cwd: Path, feature_id: str, run_number: int) -> Optional[VerificationResult]:
    path = _feature_dir(cwd, feature_id) / f"{format_run_number(run_number)}.json"
    if not path.exists():
        return None
    try:
        data = validate_file(path, "verification_result")
    except ValidationError as e:
        logger.warning(f"[STORE] Skipping invalid verification record {path}: {e}")
        return None
    result = VerificationResult.from_dict(data)
    if result.feature_id != feature_id:
        logger.warning(f"[STORE] Skipping {path}: record belongs to {result.feature_id}")
        return None
    return result


def generate_report(result: VerificationResult, run_number: int) -> str:
    """Markdown report for one run."""
    lines = [
        f"# Verification: {result.feature_id} (run {format_run_number(run_number)})",
        "",
        f"- **Verdict:** {result.verdict}",
        f"- **Timestamp:** {result.timestamp}",
        f"- **Commit:** {result.commit_hash}",
        f"- **Changed files:** {len(result.changed_files)}",
        "",
        "## Automated Checks",
        "",
    ]
    if result.automated_checks:
        lines.append("| Check | Result | Duration |")
        lines.append("|-------|--------|----------|")
        for check in result.automated_checks:
            status = "pass" if check.success else "FAIL"
            lines.append(f"| {check.type} | {status} | {check.duration:.1f}s |")
    else:
        lines.append("No automated checks ran.")
    lines.append("")

    lines.append("## Acceptance Criteria")
    lines.append("")
    if result.ai_skipped:
        lines.append("AI verification was skipped.")
    elif not result.criteria_results:
        lines.append("No criteria results.")
    for c in result.criteria_results:
        mark = "x" if c.satisfied else " "
        lines.append(f"- [{mark}] {c.index}. {c.criterion} (confidence {c.confidence:.2f})")
        if c.reasoning:
            lines.append(f"  - {c.reasoning}")
        for evidence in c.evidence:
            lines.append(f"  - evidence: {evidence}")
    lines.append("")

    if result.reasoning:
        lines += ["## Reasoning", "", result.reasoning, ""]
    if result.suggestions:
        lines += ["## Suggestions", ""] + [f"- {s}" for s in result.suggestions] + [""]
    if result.diff_summary:
        lines += ["## Diff Summary", "", "```", result.diff_summary, "```", ""]
    return "\n".join(lines)


def save_verification_result(cwd: Path, result: VerificationResult) -> int:
    """Persist one run and update the index. Returns the run number."""
    feature_dir = _feature_dir(cwd, result.feature_id)
    run_number = get_next_run_number(cwd, result.feature_id)
    run_str = format_run_number(run_number)

    record = result.to_dict()
    record["runNumber"] = run_number
    json_path = feature_dir / f"{run_str}.json"
    validate_before_write(record, "verification_result", json_path)

    feature_dir.mkdir(parents=True, exist_ok=True)
    json_path.write_text(json.dumps(record, indent=2) + "\n")
    (feature_dir / f"{run_str}.md").write_text(generate_report(result, run_number))

    index = load_index(cwd) or _empty_index()
    total = len(_run_numbers(feature_dir))
    index["features"][result.feature_id] = _summary(result, run_number, total)
    _save_index(cwd, index)

    logger.info(f"[STORE] Saved verification run {run_str} for {result.feature_id} ({result.verdict})")
    return run_number


def _latest_from_files(cwd: Path, feature_id: str) -> Optional[StoredRun]:
    for run_number in reversed(_run_numbers(_feature_dir(cwd, feature_id))):
        result = _load_run(cwd, feature_id, run_number)
        if result is not None:
            return StoredRun(run_number=run_number, result=result)
    return None


def get_last_verification(cwd: Path, feature_id: str) -> Optional[StoredRun]:
    """Latest run for a feature, or None if it was never verified.

    The index is trusted only when it agrees with the run files; otherwise
    the answer comes from the files and the index entry is repaired.
    """
    latest = _latest_from_files(cwd, feature_id)
    index = load_index(cwd)
    entry = (index or {}).get("features", {}).get(feature_id)

    if latest is None:
        if entry is not None:
            logger.warning(f"[STORE] Index lists {feature_id} but no run files exist")
        return None

    if entry is not None and entry["latestRun"] == latest.run_number and entry["verdict"] == latest.result.verdict:
        return latest

    logger.warning(f"[STORE] Verification index stale for {feature_id}, re-deriving from run files")
    index = index or _empty_index()
    total = len(_run_numbers(_feature_dir(cwd, feature_id)))
    index["features"][feature_id] = _summary(latest.result, latest.run_number, total)
    _save_index(cwd, index)
    return latest


def get_verification_history(cwd: Path, feature_id: str) -> list[StoredRun]:
    """Every readable run for a feature, oldest first."""
    runs = []
    for run_number in _run_numbers(_feature_dir(cwd, feature_id)):
        result = _load_run(cwd, feature_id, run_number)
        if result is not None:
            runs.append(StoredRun(run_number=run_number, result=result))
    return runs


def rebuild_index(cwd: Path) -> dict:
    """Rebuild index.json from the run files alone."""
    index = _empty_index()
    store = _store_dir(cwd)
    if store.is_dir():
        for feature_dir in sorted(p for p in store.iterdir() if p.is_dir()):
            numbers = _run_numbers(feature_dir)
            for run_number in reversed(numbers):
                path = feature_dir / f"{format_run_number(run_number)}.json"
                try:
                    result = VerificationResult.from_dict(validate_file(path, "verification_result"))
                except ValidationError as e:
                    logger.warning(f"[STORE] Skipping invalid verification record {path}: {e}")
                    continue
                index["features"][result.feature_id] = _summary(result, run_number, len(numbers))
                break
    _save_index(cwd, index)
    return index


def clear_verification_result(cwd: Path, feature_id: str) -> bool:
    """Drop a feature from the index. Run files are kept as history."""
    index = load_index(cwd)
    if not index or feature_id not in index["features"]:
        return False
    del index["features"][feature_id]
    _save_index(cwd, index)
    return True


def get_verification_stats(cwd: Path) -> dict[str, int]:
    """Counts per latest verdict, plus feature and run totals."""
    index = load_index(cwd)
    if index is None:
        index = rebuild_index(cwd) if _store_dir(cwd).is_dir() else _empty_index()

    summaries = list(index["features"].values())
    verdicts = Counter(s["verdict"] for s in summaries)
    stats = {verdict: verdicts.get(verdict, 0) for verdict in VERDICTS}
    stats["features"] = len(summaries)
    stats["runs"] = sum(s["totalRuns"] for s in summaries)
    return stats
