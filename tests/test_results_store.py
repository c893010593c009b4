"""Tests for foreman.store.results module."""

import json

import pytest

from foreman.store.results import (
    save_verification_result,
    get_last_verification,
    get_verification_history,
    get_next_run_number,
    load_index,
    rebuild_index,
    clear_verification_result,
    get_verification_stats,
    generate_report,
    format_run_number,
)
from foreman.verifier.types import VerificationResult, AutomatedCheckResult, CriterionResult


def make_result(feature_id="auth.login", verdict="pass", timestamp="2026-01-05T10:00:00+00:00"):
    return VerificationResult(
        feature_id=feature_id,
        timestamp=timestamp,
        commit_hash="abc1234def",
        changed_files=("src/auth/login.ts",),
        diff_summary=" src/auth/login.ts | 4 ++--",
        automated_checks=(AutomatedCheckResult(type="test", success=verdict != "fail", duration=1.5, command="pytest"),),
        criteria_results=(CriterionResult(index=0, criterion="User can log in", satisfied=True, confidence=0.9),),
        verdict=verdict,
        reasoning="Looks right",
    )


class TestSaveVerificationResult:
    """Tests for save_verification_result()."""

    def test_first_run(self, tmp_path):
        assert save_verification_result(tmp_path, make_result()) == 1

        feature_dir = tmp_path / "ai" / "verification" / "auth.login"
        record = json.loads((feature_dir / "001.json").read_text())
        assert record["runNumber"] == 1
        assert record["featureId"] == "auth.login"
        assert record["verdict"] == "pass"
        assert (feature_dir / "001.md").exists()

    def test_run_numbers_increase(self, tmp_path):
        save_verification_result(tmp_path, make_result(verdict="fail"))
        assert save_verification_result(tmp_path, make_result(verdict="pass")) == 2
        assert get_next_run_number(tmp_path, "auth.login") == 3

    def test_index_updated(self, tmp_path):
        save_verification_result(tmp_path, make_result(verdict="fail"))
        save_verification_result(tmp_path, make_result(verdict="pass"))

        entry = load_index(tmp_path)["features"]["auth.login"]
        assert entry["latestRun"] == 2
        assert entry["verdict"] == "pass"
        assert entry["totalRuns"] == 2

    def test_unsafe_feature_id(self, tmp_path):
        save_verification_result(tmp_path, make_result(feature_id="auth/login v2"))
        dirs = list((tmp_path / "ai" / "verification").glob("auth_login_v2~*"))
        assert len(dirs) == 1
        assert (dirs[0] / "001.json").exists()

    def test_ids_that_sanitise_alike_stay_separate(self, tmp_path):
        """auth/login and auth_login keep their own run sequences."""
        assert save_verification_result(tmp_path, make_result(feature_id="auth/login", verdict="fail")) == 1
        assert save_verification_result(tmp_path, make_result(feature_id="auth_login", verdict="pass")) == 1

        last = get_last_verification(tmp_path, "auth/login")
        assert last.result.feature_id == "auth/login"
        assert last.result.verdict == "fail"
        assert [r.result.feature_id for r in get_verification_history(tmp_path, "auth_login")] == ["auth_login"]

    def test_foreign_record_in_feature_dir_ignored(self, tmp_path, caplog):
        save_verification_result(tmp_path, make_result(feature_id="auth.signup"))
        src = tmp_path / "ai" / "verification" / "auth.signup" / "001.json"
        dest = tmp_path / "ai" / "verification" / "auth.login" / "001.json"
        dest.parent.mkdir(parents=True)
        dest.write_text(src.read_text())

        assert get_verification_history(tmp_path, "auth.login") == []
        assert "belongs to auth.signup" in caplog.text


class TestGetLastVerification:
    """Tests for get_last_verification()."""

    def test_never_verified(self, tmp_path):
        assert get_last_verification(tmp_path, "auth.login") is None

    def test_latest(self, tmp_path):
        save_verification_result(tmp_path, make_result(verdict="fail"))
        save_verification_result(tmp_path, make_result(verdict="needs_review"))

        last = get_last_verification(tmp_path, "auth.login")
        assert last.run_number == 2
        assert last.result.verdict == "needs_review"

    def test_stale_index_repaired_from_files(self, tmp_path, caplog):
        save_verification_result(tmp_path, make_result(verdict="pass"))
        index_path = tmp_path / "ai" / "verification" / "index.json"
        index = json.loads(index_path.read_text())
        index["features"]["auth.login"]["verdict"] = "fail"
        index_path.write_text(json.dumps(index))

        last = get_last_verification(tmp_path, "auth.login")

        assert last.result.verdict == "pass"
        assert "stale" in caplog.text
        assert load_index(tmp_path)["features"]["auth.login"]["verdict"] == "pass"

    def test_missing_index(self, tmp_path):
        save_verification_result(tmp_path, make_result())
        (tmp_path / "ai" / "verification" / "index.json").unlink()

        assert get_last_verification(tmp_path, "auth.login").run_number == 1
        assert load_index(tmp_path) is not None

    def test_corrupt_run_file_skipped(self, tmp_path, caplog):
        save_verification_result(tmp_path, make_result(verdict="fail"))
        save_verification_result(tmp_path, make_result(verdict="pass"))
        (tmp_path / "ai" / "verification" / "auth.login" / "002.json").write_text("{broken")

        last = get_last_verification(tmp_path, "auth.login")
        assert last.run_number == 1
        assert last.result.verdict == "fail"
        assert "Skipping invalid verification record" in caplog.text


class TestHistoryAndIndex:
    """Tests for history, index rebuild, clearing and stats."""

    def test_history_oldest_first(self, tmp_path):
        save_verification_result(tmp_path, make_result(verdict="fail"))
        save_verification_result(tmp_path, make_result(verdict="pass"))
        runs = get_verification_history(tmp_path, "auth.login")
        assert [r.run_number for r in runs] == [1, 2]
        assert [r.result.verdict for r in runs] == ["fail", "pass"]

    def test_history_empty(self, tmp_path):
        assert get_verification_history(tmp_path, "auth.login") == []

    def test_rebuild_index(self, tmp_path):
        save_verification_result(tmp_path, make_result("a", "pass"))
        save_verification_result(tmp_path, make_result("b", "fail"))
        (tmp_path / "ai" / "verification" / "index.json").write_text("garbage")

        index = rebuild_index(tmp_path)
        assert set(index["features"]) == {"a", "b"}
        assert index["features"]["b"]["verdict"] == "fail"

    def test_clear(self, tmp_path):
        save_verification_result(tmp_path, make_result())
        assert clear_verification_result(tmp_path, "auth.login") is True
        assert "auth.login" not in load_index(tmp_path)["features"]
        assert (tmp_path / "ai" / "verification" / "auth.login" / "001.json").exists()
        assert clear_verification_result(tmp_path, "auth.login") is False

    def test_stats(self, tmp_path):
        save_verification_result(tmp_path, make_result("a", "pass"))
        save_verification_result(tmp_path, make_result("a", "pass"))
        save_verification_result(tmp_path, make_result("b", "fail"))

        stats = get_verification_stats(tmp_path)
        assert stats["pass"] == 1
        assert stats["fail"] == 1
        assert stats["needs_review"] == 0
        assert stats["features"] == 2
        assert stats["runs"] == 3

    def test_stats_empty(self, tmp_path):
        assert get_verification_stats(tmp_path) == {"pass": 0, "fail": 0, "needs_review": 0, "features": 0, "runs": 0}


class TestGenerateReport:
    """Tests for generate_report()."""

    def test_report_contents(self):
        report = generate_report(make_result(), 3)
        assert "# Verification: auth.login (run 003)" in report
        assert "| test | pass | 1.5s |" in report
        assert "- [x] 0. User can log in" in report
        assert "Looks right" in report

    def test_ai_skipped(self):
        result = VerificationResult(
            feature_id="a", timestamp="t", commit_hash="unknown", changed_files=(),
            diff_summary="", automated_checks=(), criteria_results=(),
            verdict="needs_review", ai_skipped=True,
        )
        report = generate_report(result, 1)
        assert "No automated checks ran." in report
        assert "AI verification was skipped." in report

    @pytest.mark.parametrize("number,expected", [(1, "001"), (42, "042"), (1000, "1000")])
    def test_format_run_number(self, number, expected):
        assert format_run_number(number) == expected
