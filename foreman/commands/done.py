"""
foreman done - Verify a feature and mark it passing.

Order: TDD gate, then a full check (unless --skip-check), then the status
change. The gate and a failing verdict leave the status untouched.
"""

import asyncio
from pathlib import Path

from foreman.agents.verifier import load_verify_agent
from foreman.features.lifecycle import transition, can_transition
from foreman.features.models import PASSING, NEEDS_REVIEW
from foreman.features.store import (
    require_feature_list,
    save_feature_list,
    get_feature,
    append_note,
    select_next_feature,
)
from foreman.lib.config import ProjectProfile
from foreman.lib.progress import append_progress_log
from foreman.store.results import save_verification_result
from foreman.verifier.layered_check import run_full_check
from foreman.verifier.tdd_gate import check_tdd_gate
from foreman.verifier.types import PASS, NEEDS_REVIEW as VERDICT_NEEDS_REVIEW


def cmd_done(args, cwd: Path, profile: ProjectProfile) -> int:
    """Mark a feature as passing after it clears the gate and the full check."""
    feature_list = require_feature_list(cwd)
    feature = get_feature(feature_list.features, args.feature_id)

    if feature.status == PASSING:
        print(f"Feature '{feature.id}' is already passing")
        return 0

    gate = asyncio.run(check_tdd_gate(cwd, feature, feature_list.metadata.tdd_mode))
    if not gate.passed:
        print(f"BLOCKED: required tests missing for '{feature.id}'")
        for pattern in gate.missing:
            print(f"  missing: {pattern}")
        print()
        print("Write the tests first, then run: foreman done " + feature.id)
        return 1

    reason = "Verified"
    if args.skip_check:
        reason = "Marked done without verification"
    else:
        agent = load_verify_agent(cwd, profile.ai_timeout)
        outcome = asyncio.run(run_full_check(cwd, profile, feature_id=feature.id, agent=agent))
        result = outcome.result
        run_number = save_verification_result(cwd, result)
        append_progress_log(cwd, "VERIFY", f"verdict={result.verdict}", feature_id=feature.id)
        print(f"Verification run {run_number}: {result.verdict.upper()}")

        if result.verdict == VERDICT_NEEDS_REVIEW:
            if can_transition(feature.status, NEEDS_REVIEW):
                transition(feature, NEEDS_REVIEW, reason=result.reasoning or "Verification inconclusive")
                save_feature_list(cwd, feature_list)
            print(f"Feature '{feature.id}' needs review: {result.reasoning or 'verification inconclusive'}")
            return 1

        if result.verdict != PASS:
            failed = [c.type for c in result.automated_checks if not c.success]
            if failed:
                print(f"Failed checks: {', '.join(failed)}")
            unmet = [c for c in result.criteria_results if not c.satisfied]
            for c in unmet:
                print(f"  unmet: {c.index + 1}. {c.criterion}")
            print(f"Feature '{feature.id}' was not marked done")
            return 1

    transition(feature, PASSING, reason=reason)
    if args.notes:
        append_note(feature, args.notes)
    save_feature_list(cwd, feature_list)
    append_progress_log(cwd, "STEP", f"marked passing ({reason.lower()})", feature_id=feature.id)

    print(f"Done: {feature.id} -> passing")

    next_feature = select_next_feature(feature_list.features)
    if next_feature:
        print(f"Next: {next_feature.id}")
    else:
        print("All features complete")
    print(f"Check dependents: foreman impact {feature.id}")
    return 0
