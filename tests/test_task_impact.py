"""Tests for foreman.verifier.task_impact module."""

import pytest

from foreman.features.models import Feature, FeatureTestRequirements, UnitTestRequirement
from foreman.verifier.task_impact import (
    matches_glob,
    derive_source_pattern,
    match_affected_by,
    match_test_pattern,
    match_module,
    get_task_impact,
    build_file_task_index,
    features_for_file,
)
from foreman.verifier.types import HIGH, MEDIUM, LOW


def with_tests(pattern):
    return FeatureTestRequirements(unit=UnitTestRequirement(pattern=pattern))


class TestMatchesGlob:
    """Tests for matches_glob() glob semantics."""

    def test_globstar_spans_directories(self):
        assert matches_glob("src/auth/deep/login.ts", "src/auth/**/*.ts")

    def test_globstar_matches_zero_directories(self):
        assert matches_glob("src/auth/login.ts", "src/auth/**/*.ts")

    def test_brace_alternation(self):
        assert matches_glob("src/auth/login.tsx", "src/auth/*.{ts,tsx}")

    def test_slash_free_pattern_matches_base_name(self):
        assert matches_glob("src/deep/package.json", "package.json")

    def test_no_match(self):
        assert not matches_glob("src/billing/invoice.ts", "src/auth/**/*")


class TestDeriveSourcePattern:
    """Tests for derive_source_pattern()."""

    @pytest.mark.parametrize("test_pattern,expected", [
        ("tests/auth/login.test.ts", "src/auth/login.ts"),
        ("tests/auth/**/*.test.*", "src/auth/**/*.*"),
        ("tests/test_login.py", "src/login.py"),
        ("test/auth/login.spec.js", "src/auth/login.js"),
        ("__tests__/auth/login.test.tsx", "src/auth/login.tsx"),
        ("spec/billing/invoice_test.go", "src/billing/invoice.go"),
        ("tests/auth/helpers.ts", "src/auth/helpers.ts"),
    ])
    def test_derivation(self, test_pattern, expected):
        assert derive_source_pattern(test_pattern) == expected

    def test_custom_source_root(self):
        assert derive_source_pattern("tests/test_login.py", "app/") == "app/login.py"


class TestStrategies:
    """Tests for the individual matching strategies."""

    def test_affected_by(self):
        feature = Feature(id="auth.login", affected_by=["src/auth/**/*.ts"])
        impact = match_affected_by(feature, ["src/auth/login.ts", "README.md"], "src")
        assert impact.confidence == HIGH
        assert impact.matched_files == ("src/auth/login.ts",)
        assert impact.reason == "matches affectedBy pattern: src/auth/**/*.ts"

    def test_affected_by_without_patterns(self):
        assert match_affected_by(Feature(id="a"), ["src/a.ts"], "src") is None

    def test_test_pattern(self):
        feature = Feature(id="auth.login", test_requirements=with_tests("tests/auth/login.test.ts"))
        impact = match_test_pattern(feature, ["src/auth/login.ts"], "src")
        assert impact.confidence == MEDIUM
        assert impact.reason == "matches test pattern: tests/auth/login.test.ts"

    def test_module(self):
        feature = Feature(id="auth.login", module="auth")
        impact = match_module(feature, ["lib/auth/session.py"], "src")
        assert impact.confidence == LOW
        assert impact.reason == "file in module: auth"

    def test_module_no_match(self):
        feature = Feature(id="auth.login", module="auth")
        assert match_module(feature, ["src/authz/rules.ts"], "src") is None


class TestGetTaskImpact:
    """Tests for get_task_impact()."""

    def test_affected_by_match_is_high(self):
        features = [Feature(id="auth.login", affected_by=["src/auth/**/*.ts"])]
        impacts = get_task_impact(features, ["src/auth/login.ts"])
        assert len(impacts) == 1
        assert impacts[0].feature_id == "auth.login"
        assert impacts[0].confidence == HIGH

    def test_ordered_by_confidence(self):
        features = [
            Feature(id="c.low", module="auth"),
            Feature(id="b.medium", test_requirements=with_tests("tests/auth/login.test.ts")),
            Feature(id="a.high", affected_by=["src/auth/*.ts"]),
        ]
        impacts = get_task_impact(features, ["src/auth/login.ts"])
        assert [i.confidence for i in impacts] == [HIGH, MEDIUM, LOW]
        assert [i.feature_id for i in impacts] == ["a.high", "b.medium", "c.low"]

    def test_first_strategy_wins(self):
        feature = Feature(
            id="auth.login",
            module="auth",
            affected_by=["src/auth/**/*"],
            test_requirements=with_tests("tests/auth/login.test.ts"),
        )
        impacts = get_task_impact([feature], ["src/auth/login.ts"])
        assert len(impacts) == 1
        assert impacts[0].confidence == HIGH

    def test_settled_features_skipped(self):
        features = [
            Feature(id="a", module="auth", status="passing"),
            Feature(id="b", module="auth", status="deprecated"),
            Feature(id="c", module="auth", status="needs_review"),
        ]
        impacts = get_task_impact(features, ["src/auth/login.ts"])
        assert [i.feature_id for i in impacts] == ["c"]

    def test_no_changes(self):
        assert get_task_impact([Feature(id="a", module="auth")], []) == []

    def test_unrelated_change(self):
        features = [Feature(id="a", module="auth", affected_by=["src/auth/**"])]
        assert get_task_impact(features, ["docs/guide.md"]) == []


class TestFileTaskIndex:
    """Tests for build_file_task_index() and features_for_file()."""

    def test_lookup(self):
        features = [
            Feature(id="auth.login", module="auth"),
            Feature(id="auth.session", affected_by=["src/auth/session.ts"]),
        ]
        index = build_file_task_index(features)
        assert features_for_file(index, "src/auth/session.ts") == {"auth.login", "auth.session"}
        assert features_for_file(index, "src/other/x.ts") == set()
