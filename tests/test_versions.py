"""Tests for pnpm_changelog.versions."""

from __future__ import annotations

import pytest

from pnpm_changelog.errors import VersionValidationError
from pnpm_changelog.models import BumpType
from pnpm_changelog.versions import (
    calculate_bump,
    compare_versions,
    is_breaking_message,
    is_valid_version,
    next_version,
    parse_version,
)


class TestParseVersion:
    """Tests for parse_version()."""

    def test_valid(self) -> None:
        v = parse_version("1.2.3")
        assert (v.major, v.minor, v.patch) == (1, 2, 3)

    @pytest.mark.parametrize("raw", ["1.2", "abc", "", "v1.x"])
    def test_invalid_raises(self, raw: str) -> None:
        with pytest.raises(VersionValidationError):
            parse_version(raw)

    def test_is_valid_version(self) -> None:
        assert is_valid_version("1.0.0-beta.1")
        assert not is_valid_version("1.0")

    def test_compare(self) -> None:
        assert compare_versions("1.0.0", "1.0.1") == -1
        assert compare_versions("2.0.0", "1.9.9") == 1
        assert compare_versions("1.0.0", "1.0.0") == 0


class TestNextVersion:
    """Tests for next_version()."""

    @pytest.mark.parametrize(
        ("bump", "expected"),
        [
            (BumpType.PATCH, "1.2.4"),
            (BumpType.MINOR, "1.3.0"),
            (BumpType.MAJOR, "2.0.0"),
        ],
    )
    def test_bumps(self, bump: BumpType, expected: str) -> None:
        assert next_version("1.2.3", bump) == expected

    def test_prerelease_patch_releases(self) -> None:
        assert next_version("1.0.0-rc.1", BumpType.PATCH) == "1.0.0"

    def test_result_is_greater(self) -> None:
        for bump in BumpType:
            assert compare_versions(next_version("0.9.9", bump), "0.9.9") == 1

    def test_invalid_raises(self) -> None:
        with pytest.raises(VersionValidationError):
            next_version("not-a-version", BumpType.PATCH)


class TestCalculateBump:
    """Tests for calculate_bump()."""

    def test_feature_wins_over_fix(self) -> None:
        assert calculate_bump("1.0.0", ["fix: patch bug", "feat: add x"]) == BumpType.MINOR

    def test_breaking_header_is_major(self) -> None:
        assert calculate_bump("1.0.0", ["feat!: remove legacy api"]) == BumpType.MAJOR

    def test_breaking_footer_is_major(self) -> None:
        messages = ["fix: tidy\n\nBREAKING CHANGE: config moved"]
        assert calculate_bump("1.0.0", messages) == BumpType.MAJOR

    def test_scoped_feature_is_minor(self) -> None:
        assert calculate_bump("1.0.0", ["feat(api): add endpoint"]) == BumpType.MINOR

    def test_default_is_patch(self) -> None:
        assert calculate_bump("1.0.0", ["chore: deps", "docs: readme"]) == BumpType.PATCH
        assert calculate_bump("1.0.0", []) == BumpType.PATCH

    def test_override_always_wins(self) -> None:
        messages = ["feat!: remove legacy api"]
        assert calculate_bump("1.0.0", messages, BumpType.PATCH) == BumpType.PATCH

    def test_deterministic(self) -> None:
        messages = ["fix: a", "feat(ui): b", "chore: c"]
        results = {calculate_bump("1.0.0", messages) for _ in range(5)}
        assert results == {BumpType.MINOR}

    def test_is_breaking_message(self) -> None:
        assert is_breaking_message("refactor(core)!: drop node 16")
        assert not is_breaking_message("feat: add x")
