#!/usr/bin/env python3
"""foreman CLI entrypoint."""

import argparse
import logging
import sys
from pathlib import Path

from foreman.features.lifecycle import InvalidTransition
from foreman.features.models import FeatureListNotFound, FeatureNotFound, DuplicateFeatureId
from foreman.lib.config import load_project_profile
from foreman.lib.constants import TDD_MODES
from foreman.lib.validate import ValidationError
from foreman.commands import check as cmd_check_module
from foreman.commands import done as cmd_done_module
from foreman.commands import fail as cmd_fail_module
from foreman.commands import history as cmd_history_module
from foreman.commands import impact as cmd_impact_module
from foreman.commands import next as cmd_next_module
from foreman.commands import status as cmd_status_module
from foreman.commands import tdd as cmd_tdd_module

# Structural errors: reported as "ERROR: ..." with exit code 2
CONFIG_ERRORS = (
    FeatureListNotFound,
    FeatureNotFound,
    DuplicateFeatureId,
    InvalidTransition,
    ValidationError,
)


def get_project_dir(args) -> Path:
    """Project root from --cwd, or the current directory."""
    return Path(args.cwd).resolve() if args.cwd else Path.cwd()


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _run(handler):
    """Wrap a command module function with project loading and error reporting."""
    def run(args) -> int:
        cwd = get_project_dir(args)
        try:
            profile = load_project_profile(cwd)
        except ValueError as e:
            print(f"ERROR: Invalid ai/project_profile.env: {e}")
            return 2
        try:
            return handler(args, cwd, profile)
        except CONFIG_ERRORS as e:
            print(f"ERROR: {e}")
            return 2
    return run


cmd_status = _run(cmd_status_module.cmd_status)
cmd_next = _run(cmd_next_module.cmd_next)
cmd_check = _run(cmd_check_module.cmd_check)
cmd_done = _run(cmd_done_module.cmd_done)
cmd_fail = _run(cmd_fail_module.cmd_fail)
cmd_impact = _run(cmd_impact_module.cmd_impact)
cmd_tdd = _run(cmd_tdd_module.cmd_tdd)
cmd_history = _run(cmd_history_module.cmd_history)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='foreman', description='Feature harness: verification and change impact')
    parser.add_argument('--cwd', '-C', help='Project directory (default: current directory)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging and detailed output')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # foreman status
    p_status = subparsers.add_parser('status', help='Show feature list progress')
    p_status.add_argument('--json', action='store_true', help='Machine-readable output')
    p_status.add_argument('--quiet', '-q', action='store_true', help='One-line summary')
    p_status.set_defaults(func=cmd_status)

    # foreman next
    p_next = subparsers.add_parser('next', help='Show the next feature to work on')
    p_next.add_argument('feature_id', nargs='?', help='Show this feature instead')
    p_next.set_defaults(func=cmd_next)

    # foreman check
    p_check = subparsers.add_parser('check', help='Run fast (default) or full verification')
    p_check.add_argument('feature_id', nargs='?', help='Target feature (implies --full)')
    p_check.add_argument('--full', action='store_true', help='Run all checks plus AI verification')
    p_check.add_argument('--ai', action='store_true', help='Fast path: AI-verify impacted features')
    p_check.add_argument('--skip-e2e', action='store_true', help='Full path: skip end-to-end tests')
    p_check.add_argument('--verbose', '-v', action='store_true', default=argparse.SUPPRESS,
                         help='Show failing check output')
    p_check.set_defaults(func=cmd_check)

    # foreman done
    p_done = subparsers.add_parser('done', help='Verify a feature and mark it passing')
    p_done.add_argument('feature_id', help='Feature ID')
    p_done.add_argument('--skip-check', action='store_true', help='Skip the full check (TDD gate still applies)')
    p_done.add_argument('--notes', '-n', help='Note to append to the feature')
    p_done.set_defaults(func=cmd_done)

    # foreman fail
    p_fail = subparsers.add_parser('fail', help='Mark a feature as failed')
    p_fail.add_argument('feature_id', help='Feature ID')
    p_fail.add_argument('--reason', '-r', help='Why it failed')
    p_fail.set_defaults(func=cmd_fail)

    # foreman impact
    p_impact = subparsers.add_parser('impact', help='Show features affected by a change to one feature')
    p_impact.add_argument('feature_id', help='Changed feature ID')
    p_impact.add_argument('--apply', action='store_true', help='Apply the recommendations')
    p_impact.set_defaults(func=cmd_impact)

    # foreman tdd
    p_tdd = subparsers.add_parser('tdd', help='Show or set TDD mode')
    p_tdd.add_argument('mode', nargs='?', choices=TDD_MODES, help='New mode')
    p_tdd.set_defaults(func=cmd_tdd)

    # foreman history
    p_history = subparsers.add_parser('history', help='Show verification runs for a feature')
    p_history.add_argument('feature_id', nargs='?', help='Feature ID')
    p_history.add_argument('--rebuild-index', action='store_true', help='Rebuild the verification index from run files')
    p_history.set_defaults(func=cmd_history)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
