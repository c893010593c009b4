"""
foreman tdd - Show or set the project's TDD mode.
"""

from pathlib import Path

from foreman.features.store import require_feature_list, save_feature_list
from foreman.lib.config import ProjectProfile
from foreman.lib.constants import TDD_MODES
from foreman.lib.progress import append_progress_log

MODE_HELP = {
    "strict": "tests are required before any feature can be marked done",
    "recommended": "tests are suggested; only features marking them required are gated",
    "disabled": "no test guidance; only features marking tests required are gated",
}


def cmd_tdd(args, cwd: Path, profile: ProjectProfile) -> int:
    """Print the current mode, or switch to the one given."""
    feature_list = require_feature_list(cwd)
    current = feature_list.metadata.tdd_mode

    if not args.mode:
        print(f"TDD mode: {current}")
        print(f"  {MODE_HELP.get(current, '')}")
        return 0

    if args.mode not in TDD_MODES:
        print(f"ERROR: Unknown TDD mode '{args.mode}'. Choose one of: {', '.join(TDD_MODES)}")
        return 2

    if args.mode == current:
        print(f"TDD mode already {current}")
        return 0

    feature_list.metadata.tdd_mode = args.mode
    save_feature_list(cwd, feature_list)
    append_progress_log(cwd, "CHANGE", f"tdd mode {current} -> {args.mode}")
    print(f"TDD mode: {current} -> {args.mode}")
    print(f"  {MODE_HELP[args.mode]}")
    return 0
