# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for full-scan trigger patterns."""

import pytest

from xfile_impact.full_scan import (
    BUILT_IN_PATTERNS,
    FullScanMatch,
    FullScanMatcher,
    compile_delimited,
    glob_to_regex,
    is_regex_pattern,
    matches_pattern,
)


class TestPatternKinds:
    def test_delimited_regex_is_recognized(self):
        assert is_regex_pattern("/\\.env$/")
        assert is_regex_pattern("#^config/#i")

    def test_anchored_glob_is_not_a_regex(self):
        """Test that '/composer.json' reads as a root-anchored glob."""
        assert not is_regex_pattern("/composer.json")
        assert not is_regex_pattern("composer.json")

    def test_compile_delimited_flags(self):
        compiled = compile_delimited("/^CONFIG\\//i")
        assert compiled is not None
        assert compiled.search("config/app.php")

    def test_invalid_regex_does_not_compile(self):
        assert compile_delimited("/[unclosed/") is None
        assert compile_delimited("#abc#q") is None

    def test_glob_to_regex(self):
        assert glob_to_regex("/config/*.php") == "^config/[^/]*\\.php$"


class TestMatchesPattern:
    @pytest.mark.parametrize(
        "path,pattern,expected",
        [
            ("composer.json", "composer.json", True),
            ("packages/a/composer.json", "composer.json", True),
            ("composer.json.bak", "composer.json", False),
            ("composer.json", "/composer.json", True),
            ("packages/a/composer.json", "/composer.json", False),
            ("config/app.php", "config/*.php", True),
            ("config/nested/app.php", "config/*.php", False),
            ("config/nested/app.php", "config/**.php", True),
            ("src/bootstrap.php", "bootstrap.ph?", True),
            ("src/.env", "/\\.env$/", True),
            ("src/.env.example", "/\\.env$/", False),
            ("Config/App.php", "#^config/#i", True),
        ],
    )
    def test_matches(self, path, pattern, expected):
        assert matches_pattern(path, pattern) is expected

    def test_windows_separators_are_normalized(self):
        assert matches_pattern("config\\app.php", "config/*.php")


class TestFullScanMatcher:
    def test_built_in_patterns_by_default(self):
        matcher = FullScanMatcher()
        assert matcher.patterns == list(BUILT_IN_PATTERNS)
        assert matcher.should_trigger(["src/User.php", "composer.lock"])
        assert matcher.last_match == FullScanMatch(file="composer.lock", pattern="composer.lock")

    def test_no_trigger(self):
        matcher = FullScanMatcher()
        assert not matcher.should_trigger(["src/User.php"])
        assert matcher.last_match is None

    def test_empty_patterns_disable_triggers(self):
        assert not FullScanMatcher([]).should_trigger(["composer.json"])

    def test_override_replaces_configured_patterns(self):
        matcher = FullScanMatcher(["composer.json"])
        assert matcher.should_trigger(["phpunit.xml"], override="phpunit.xml")
        assert not matcher.should_trigger(["composer.json"], override="phpunit.xml")
