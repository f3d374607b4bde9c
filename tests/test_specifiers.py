"""Tests for pnpm_changelog.specifiers."""

from __future__ import annotations

import pytest

from pnpm_changelog.specifiers import (
    Concrete,
    ProtocolSpecifier,
    WorkspaceExact,
    WorkspaceWildcard,
    is_workspace_wildcard,
    parse_specifier,
    range_to_check,
    rewrite_specifier,
)


class TestParseSpecifier:
    """Tests for parse_specifier()."""

    @pytest.mark.parametrize("symbol", ["*", "^", "~"])
    def test_workspace_wildcards(self, symbol: str) -> None:
        spec = parse_specifier(f"workspace:{symbol}")
        assert spec == WorkspaceWildcard(symbol)
        assert spec.raw == f"workspace:{symbol}"

    def test_workspace_exact(self) -> None:
        assert parse_specifier("workspace:1.2.0") == WorkspaceExact("1.2.0")
        assert parse_specifier("workspace:^1.2.0") == WorkspaceExact("^1.2.0")

    @pytest.mark.parametrize("raw", ["1.0.0", "^1.0.0", "~2.1.0", ">=1 <2", "*"])
    def test_plain_ranges_are_concrete(self, raw: str) -> None:
        assert parse_specifier(raw) == Concrete(raw)

    @pytest.mark.parametrize(
        "raw", ["link:../b", "file:../b", "npm:other@1.0.0", "git+ssh://host/repo.git"]
    )
    def test_protocols(self, raw: str) -> None:
        assert parse_specifier(raw) == ProtocolSpecifier(raw)

    def test_is_workspace_wildcard(self) -> None:
        assert is_workspace_wildcard("workspace:*")
        assert not is_workspace_wildcard("workspace:1.0.0")
        assert not is_workspace_wildcard("^1.0.0")


class TestRewriteSpecifier:
    """Tests for rewrite_specifier()."""

    def test_concrete_becomes_bare_version(self) -> None:
        assert rewrite_specifier(Concrete("^1.0.0"), "1.1.0") == "1.1.0"
        assert rewrite_specifier(Concrete("1.0.0"), "1.0.1") == "1.0.1"

    def test_workspace_exact_keeps_prefix(self) -> None:
        assert rewrite_specifier(WorkspaceExact("1.0.0"), "1.0.1") == "workspace:1.0.1"

    def test_workspace_exact_keeps_operator(self) -> None:
        assert rewrite_specifier(WorkspaceExact("^1.0.0"), "2.0.0") == "workspace:^2.0.0"
        assert rewrite_specifier(WorkspaceExact("~1.0.0"), "1.0.1") == "workspace:~1.0.1"

    @pytest.mark.parametrize("symbol", ["*", "^", "~"])
    def test_wildcards_left_alone(self, symbol: str) -> None:
        assert rewrite_specifier(WorkspaceWildcard(symbol), "9.9.9") is None

    def test_protocols_left_alone(self) -> None:
        assert rewrite_specifier(ProtocolSpecifier("link:../b"), "2.0.0") is None


class TestRangeToCheck:
    """Tests for range_to_check()."""

    def test_concrete(self) -> None:
        assert range_to_check(Concrete("^1.0.0")) == "^1.0.0"

    def test_workspace_exact(self) -> None:
        assert range_to_check(WorkspaceExact("^1.0.0")) == "^1.0.0"

    def test_unchecked_kinds(self) -> None:
        assert range_to_check(WorkspaceWildcard("*")) is None
        assert range_to_check(ProtocolSpecifier("file:../b")) is None
