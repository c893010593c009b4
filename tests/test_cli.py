"""Tests for the foreman CLI and its commands."""

import json
from unittest.mock import patch, MagicMock

import pytest

from foreman.cli import main, build_parser
from foreman.features.models import Feature, FeatureTestRequirements, UnitTestRequirement
from foreman.features.store import load_feature_list
from foreman.lib.progress import read_recent_entries
from foreman.store.results import get_last_verification


def completed(returncode=0):
    return MagicMock(returncode=returncode, stdout="", stderr="")


def write_profile(cwd, text="TEST_COMMAND=pytest\nTEST_FRAMEWORK=pytest\n"):
    (cwd / "ai").mkdir(exist_ok=True)
    (cwd / "ai" / "project_profile.env").write_text(text)


def statuses(cwd):
    return {f.id: f.status for f in load_feature_list(cwd).features}


@pytest.fixture
def fake_git():
    with patch("foreman.git.get_changed_files", return_value=["src/auth/login.py"]), \
         patch("foreman.git.get_commit_hash", return_value="abc123"), \
         patch("foreman.git.get_diff_summary", return_value=""), \
         patch("foreman.git.get_diff", return_value=""):
        yield


@pytest.fixture
def no_agent():
    with patch("foreman.agents.verifier.check_binary_available", return_value=False):
        yield


def passing_agent():
    agent = MagicMock()
    agent.verify.return_value = {"verdict": "pass", "criteriaResults": [{"index": 0, "satisfied": True}]}
    return agent


class TestParser:
    """Tests for build_parser()."""

    def test_requires_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_tdd_mode_choices(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["tdd", "sometimes"])

    def test_global_options(self):
        args = build_parser().parse_args(["-C", "/proj", "-v", "check", "--full"])
        assert args.cwd == "/proj"
        assert args.verbose is True
        assert args.full is True

    @pytest.mark.parametrize("argv,verbose", [
        (["check", "--verbose"], True),
        (["check", "-v", "auth.login"], True),
        (["-v", "check"], True),
        (["check"], False),
    ])
    def test_check_accepts_verbose(self, argv, verbose):
        assert build_parser().parse_args(argv).verbose is verbose


class TestErrors:
    """Structural errors exit with code 2."""

    def test_missing_feature_list(self, tmp_path, capsys):
        assert main(["-C", str(tmp_path), "status"]) == 2
        assert "ERROR: Feature list not found" in capsys.readouterr().out

    def test_unknown_feature(self, write_features, capsys):
        cwd = write_features([Feature(id="a")])
        assert main(["-C", str(cwd), "next", "zzz"]) == 2
        assert "ERROR: Feature 'zzz' not found" in capsys.readouterr().out

    def test_bad_profile(self, write_features, capsys):
        cwd = write_features([Feature(id="a")])
        write_profile(cwd, "TEST_COMMAND=pytest; rm -rf /\n")
        assert main(["-C", str(cwd), "status"]) == 2
        assert "project_profile.env" in capsys.readouterr().out


class TestStatusAndNext:
    """Tests for status and next."""

    def test_status_json(self, write_features, capsys):
        cwd = write_features([Feature(id="a", status="passing"), Feature(id="b")])
        assert main(["-C", str(cwd), "status", "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["completion"] == 50
        assert data["next"] == "b"
        assert data["stats"]["passing"] == 1
        assert data["verification"]["runs"] == 0

    def test_status_quiet(self, write_features, capsys):
        cwd = write_features([Feature(id="a", status="passing"), Feature(id="b")])
        assert main(["-C", str(cwd), "status", "-q"]) == 0
        assert capsys.readouterr().out.strip() == "50% complete | 1/2 passing"

    def test_next(self, write_features, capsys):
        cwd = write_features([Feature(id="auth.login", acceptance=["User can log in"])])
        assert main(["-C", str(cwd), "next"]) == 0
        out = capsys.readouterr().out
        assert "Feature: auth.login" in out
        assert "1. User can log in" in out

    def test_next_nothing_left(self, write_features, capsys):
        cwd = write_features([Feature(id="a", status="passing")])
        assert main(["-C", str(cwd), "next"]) == 0
        assert "Nothing to do" in capsys.readouterr().out


@pytest.mark.usefixtures("fake_git")
class TestCheck:
    """Tests for the check command."""

    @patch("foreman.verifier.checks.subprocess.run")
    def test_fast_check_passes(self, mock_run, write_features, capsys):
        mock_run.return_value = completed(0)
        cwd = write_features([Feature(id="auth.login", module="auth")])
        write_profile(cwd)

        assert main(["-C", str(cwd), "check"]) == 0
        out = capsys.readouterr().out
        assert "FAST CHECK PASSED" in out
        assert "auth.login [low]" in out

    @patch("foreman.verifier.checks.subprocess.run")
    def test_fast_check_fails(self, mock_run, write_features, capsys):
        mock_run.return_value = completed(1)
        cwd = write_features([Feature(id="a")])
        write_profile(cwd)

        assert main(["-C", str(cwd), "check"]) == 1
        assert "FAST CHECK FAILED" in capsys.readouterr().out

    @patch("foreman.verifier.checks.subprocess.run")
    def test_full_check_records_result(self, mock_run, write_features, no_agent, capsys):
        mock_run.return_value = completed(0)
        cwd = write_features([Feature(id="auth.login")])
        write_profile(cwd)

        assert main(["-C", str(cwd), "check", "auth.login"]) == 0
        assert "Verdict: NEEDS_REVIEW" in capsys.readouterr().out
        assert get_last_verification(cwd, "auth.login").result.verdict == "needs_review"
        assert read_recent_entries(cwd)[-1].entry_type == "VERIFY"
        assert statuses(cwd)["auth.login"] == "failing"

    @patch("foreman.verifier.checks.subprocess.run")
    def test_full_check_fail_exit_code(self, mock_run, write_features, no_agent):
        mock_run.return_value = completed(1)
        cwd = write_features([Feature(id="auth.login")])
        write_profile(cwd)
        assert main(["-C", str(cwd), "check", "--full"]) == 1


@pytest.mark.usefixtures("fake_git")
class TestDone:
    """Tests for the done command."""

    def test_tdd_gate_blocks(self, write_features, capsys):
        reqs = FeatureTestRequirements(unit=UnitTestRequirement(pattern="tests/auth/**/*.test.ts"))
        cwd = write_features([Feature(id="auth.login", test_requirements=reqs)], tdd_mode="strict")

        assert main(["-C", str(cwd), "done", "auth.login", "--skip-check"]) == 1
        assert "missing: tests/auth/**/*.test.ts" in capsys.readouterr().out
        assert statuses(cwd)["auth.login"] == "failing"

    def test_skip_check(self, write_features, capsys):
        cwd = write_features([Feature(id="a"), Feature(id="b")])
        assert main(["-C", str(cwd), "done", "a", "--skip-check", "-n", "shipped"]) == 0

        feature = load_feature_list(cwd).features[0]
        assert feature.status == "passing"
        assert "shipped" in feature.notes
        assert "Next: b" in capsys.readouterr().out
        assert read_recent_entries(cwd)[-1].entry_type == "STEP"

    def test_already_passing(self, write_features, capsys):
        cwd = write_features([Feature(id="a", status="passing")])
        assert main(["-C", str(cwd), "done", "a"]) == 0
        assert "already passing" in capsys.readouterr().out

    @patch("foreman.commands.done.load_verify_agent")
    @patch("foreman.verifier.checks.subprocess.run")
    def test_verified_pass(self, mock_run, mock_agent, write_features):
        mock_run.return_value = completed(0)
        mock_agent.return_value = passing_agent()
        cwd = write_features([Feature(id="a", acceptance=["works"])])
        write_profile(cwd)

        assert main(["-C", str(cwd), "done", "a"]) == 0
        assert statuses(cwd)["a"] == "passing"
        assert get_last_verification(cwd, "a").result.verdict == "pass"

    @patch("foreman.commands.done.load_verify_agent")
    @patch("foreman.verifier.checks.subprocess.run")
    def test_failing_check_keeps_status(self, mock_run, mock_agent, write_features, capsys):
        mock_run.return_value = completed(1)
        mock_agent.return_value = passing_agent()
        cwd = write_features([Feature(id="a", acceptance=["works"])])
        write_profile(cwd)

        assert main(["-C", str(cwd), "done", "a"]) == 1
        assert "Failed checks: test" in capsys.readouterr().out
        assert statuses(cwd)["a"] == "failing"

    @patch("foreman.verifier.checks.subprocess.run")
    def test_no_agent_flags_for_review(self, mock_run, write_features, no_agent):
        mock_run.return_value = completed(0)
        cwd = write_features([Feature(id="a")])
        write_profile(cwd)

        assert main(["-C", str(cwd), "done", "a"]) == 1
        assert statuses(cwd)["a"] == "needs_review"


class TestFailImpactTddHistory:
    """Tests for fail, impact, tdd and history."""

    def test_fail(self, write_features, capsys):
        cwd = write_features([Feature(id="a"), Feature(id="b")])
        assert main(["-C", str(cwd), "fail", "a", "-r", "tests red"]) == 0

        feature = load_feature_list(cwd).features[0]
        assert feature.status == "failed"
        assert "Failed: tests red" in feature.notes
        assert read_recent_entries(cwd)[-1].summary == "tests red"

    def test_fail_already_failed(self, write_features, capsys):
        cwd = write_features([Feature(id="a", status="failed")])
        assert main(["-C", str(cwd), "fail", "a"]) == 0
        assert "WARNING" in capsys.readouterr().out

    def test_fail_from_deprecated(self, write_features, capsys):
        cwd = write_features([Feature(id="a", status="deprecated")])
        assert main(["-C", str(cwd), "fail", "a"]) == 2

    def test_impact_apply(self, write_features, capsys):
        cwd = write_features([
            Feature(id="core", status="passing"),
            Feature(id="login", status="passing", depends_on=["core"]),
        ])
        assert main(["-C", str(cwd), "impact", "core", "--apply"]) == 0
        assert statuses(cwd)["login"] == "needs_review"
        assert read_recent_entries(cwd)[-1].entry_type == "IMPACT"

    def test_impact_dry_run(self, write_features, capsys):
        cwd = write_features([
            Feature(id="core", status="passing"),
            Feature(id="login", status="passing", depends_on=["core"]),
        ])
        assert main(["-C", str(cwd), "impact", "core"]) == 0
        assert "--apply" in capsys.readouterr().out
        assert statuses(cwd)["login"] == "passing"

    def test_tdd_show_and_set(self, write_features, capsys):
        cwd = write_features([Feature(id="a")])
        assert main(["-C", str(cwd), "tdd"]) == 0
        assert "TDD mode: recommended" in capsys.readouterr().out

        assert main(["-C", str(cwd), "tdd", "strict"]) == 0
        assert load_feature_list(cwd).metadata.tdd_mode == "strict"
        assert read_recent_entries(cwd)[-1].entry_type == "CHANGE"

    def test_history(self, write_features, capsys):
        cwd = write_features([Feature(id="a")])
        assert main(["-C", str(cwd), "history", "a"]) == 0
        assert "No verification history" in capsys.readouterr().out

    def test_history_requires_feature(self, write_features, capsys):
        cwd = write_features([Feature(id="a")])
        assert main(["-C", str(cwd), "history"]) == 2

    def test_rebuild_index(self, write_features, capsys):
        cwd = write_features([Feature(id="a")])
        assert main(["-C", str(cwd), "history", "--rebuild-index"]) == 0
        assert "Rebuilt verification index (0 features)" in capsys.readouterr().out
