"""
Automated check runner.

Runs project check commands (typecheck, lint, test, build, e2e) as shell
subprocesses. A failing command is a result, never an exception.
"""

import asyncio
import logging
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from foreman.lib.config import ProjectProfile
from foreman.lib.constants import CHECK_ORDER
from foreman.verifier.types import AutomatedCheckResult

logger = logging.getLogger(__name__)

# Keep stored output bounded; the tail is where failures show up
MAX_OUTPUT_CHARS = 8000


@dataclass(frozen=True)
class CheckSpec:
    type: str
    command: str


def _tail(text: str, limit: int = MAX_OUTPUT_CHARS) -> str:
    if len(text) <= limit:
        return text
    return "...(truncated)...\n" + text[-limit:]


def run_check(spec: CheckSpec, cwd: Path, timeout: Optional[int] = None) -> AutomatedCheckResult:
    """Run one check command to completion and capture its result."""
    logger.info(f"[CHECK] {spec.type}: {spec.command}")
    start = time.monotonic()
    try:
        result = subprocess.run(
            spec.command,
            shell=True,
            cwd=str(cwd),
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        output = e.stdout if isinstance(e.stdout, str) else ""
        return AutomatedCheckResult(
            type=spec.type,
            success=False,
            duration=time.monotonic() - start,
            output=_tail(f"{output}\nTimed out after {timeout}s"),
            command=spec.command,
        )
    except OSError as e:
        return AutomatedCheckResult(
            type=spec.type,
            success=False,
            duration=time.monotonic() - start,
            output=f"Failed to start: {e}",
            command=spec.command,
        )

    duration = time.monotonic() - start
    success = result.returncode == 0
    if not success:
        logger.warning(f"[CHECK] {spec.type} failed (exit {result.returncode}) after {duration:.1f}s")
    return AutomatedCheckResult(
        type=spec.type,
        success=success,
        duration=duration,
        output=_tail(result.stdout + result.stderr),
        command=spec.command,
    )


def plan_checks(
    profile: ProjectProfile,
    test_command: Optional[str],
    skip_build: bool = False,
    e2e_command: Optional[str] = None,
) -> list[CheckSpec]:
    """Configured checks in run order. Unconfigured checks are left out."""
    commands = {
        "typecheck": profile.typecheck_command,
        "lint": profile.lint_command,
        "test": test_command,
        "build": None if skip_build else profile.build_command,
        "e2e": e2e_command,
    }
    return [CheckSpec(type=t, command=commands[t]) for t in CHECK_ORDER if commands[t]]


async def run_automated_checks(
    cwd: Path,
    specs: list[CheckSpec],
    timeout: Optional[int] = None,
) -> list[AutomatedCheckResult]:
    """Run checks one after another, in the given order.

    The timeout is handed to each subprocess as-is.
    """
    results = []
    for spec in specs:
        results.append(await asyncio.to_thread(run_check, spec, cwd, timeout))
    return results
