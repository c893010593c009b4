"""
foreman check - Run the layered verification pipeline.

Default is the fast path: diff-driven, selective tests, no build/e2e.
--full (or naming a feature) runs every check plus AI verification of
the target feature and records the result in the verification history.
"""

import asyncio
from pathlib import Path

from foreman.agents.verifier import load_verify_agent
from foreman.lib.config import ProjectProfile
from foreman.lib.progress import append_progress_log
from foreman.store.results import save_verification_result
from foreman.verifier.layered_check import run_layered_check, run_full_check
from foreman.verifier.types import PASS, FAIL, LayeredCheckResult, FullCheckResult

MAX_LISTED_FILES = 5


def _status_word(success: bool) -> str:
    return "passed" if success else "FAILED"


def print_layered_result(result: LayeredCheckResult, verbose: bool = False) -> None:
    if not result.changed_files:
        print("No changed files detected. Nothing to check.")
        return

    print(f"Changed: {len(result.changed_files)} file(s)")
    if verbose:
        for path in result.changed_files[:MAX_LISTED_FILES]:
            print(f"  - {path}")
        if len(result.changed_files) > MAX_LISTED_FILES:
            print(f"  ... and {len(result.changed_files) - MAX_LISTED_FILES} more")

    if result.high_risk_escalation:
        print("WARNING: High-risk files changed (config/deps). Recommend: foreman check --full")

    print(f"Skipped: {', '.join(result.skipped)}")
    print()
    for check in result.checks:
        line = f"  {check.type:<10} {_status_word(check.success)} ({check.duration:.1f}s)"
        if check.type == "test" and result.discovery is not None:
            scope = f"{len(result.discovery.test_files)} files" if result.discovery.test_files else result.discovery.source
            line += f" [{scope}]"
        print(line)
        if not check.success and verbose and check.output:
            for out_line in check.output.splitlines()[-20:]:
                print(f"      {out_line}")
    if not result.checks:
        print("  (no checks configured)")

    print()
    print(f"FAST CHECK {'PASSED' if result.passed else 'FAILED'} ({result.duration:.1f}s)")

    if result.affected_tasks:
        print()
        print("Task impact - these changes may affect:")
        for impact in result.affected_tasks:
            print(f"  {impact.feature_id} [{impact.confidence}] {impact.reason}")
        if result.task_verification is None:
            print("To verify acceptance criteria: foreman check --ai")

    if result.task_verification:
        print()
        print("Task verification:")
        for tv in result.task_verification:
            note = " (AI skipped)" if tv.skipped else ""
            print(f"  {tv.feature_id}: {tv.verdict.upper()}{note}")


def print_full_result(outcome: FullCheckResult, run_number: int, verbose: bool = False) -> None:
    result = outcome.result
    print(f"Feature: {outcome.feature_id}")
    if outcome.high_risk_escalation:
        print("Note: high-risk files changed")
    print()
    for check in result.automated_checks:
        print(f"  {check.type:<10} {_status_word(check.success)} ({check.duration:.1f}s)")
        if not check.success and verbose and check.output:
            for out_line in check.output.splitlines()[-20:]:
                print(f"      {out_line}")
    if not result.automated_checks:
        print("  (no checks configured)")

    if result.criteria_results:
        print()
        print("Acceptance criteria:")
        for c in result.criteria_results:
            mark = "x" if c.satisfied else " "
            print(f"  [{mark}] {c.index + 1}. {c.criterion}")
    elif result.ai_skipped:
        print()
        print(f"AI verification skipped: {result.reasoning}")

    print()
    print(f"Verdict: {result.verdict.upper()} (run {run_number}, {outcome.duration:.1f}s)")


def cmd_check(args, cwd: Path, profile: ProjectProfile) -> int:
    """Fast check by default; full check with --full or a feature ID."""
    verbose = getattr(args, 'verbose', False)
    full = args.full or bool(args.feature_id)

    if not full:
        agent = load_verify_agent(cwd, profile.ai_timeout) if args.ai else None
        result = asyncio.run(run_layered_check(cwd, profile, ai=args.ai, agent=agent))
        print_layered_result(result, verbose)
        return 0 if result.passed else 1

    agent = load_verify_agent(cwd, profile.ai_timeout)
    outcome = asyncio.run(run_full_check(
        cwd, profile, feature_id=args.feature_id, agent=agent, skip_e2e=args.skip_e2e,
    ))
    if outcome.feature_id is None:
        print("No ready feature to check.")
        return 0

    run_number = save_verification_result(cwd, outcome.result)
    append_progress_log(cwd, "VERIFY", f"verdict={outcome.result.verdict}", feature_id=outcome.feature_id)
    print_full_result(outcome, run_number, verbose)

    if outcome.result.verdict == PASS:
        print(f"Mark complete: foreman done {outcome.feature_id}")
    return 1 if outcome.result.verdict == FAIL else 0
