"""Tests for pnpm_changelog.changelog."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest
from conftest import make_commit

from pnpm_changelog.changelog import (
    ChangelogDocument,
    ChangelogMetadata,
    create_entry,
    entry_version,
    format_commit_message,
    parse_changelog,
    read_metadata,
    render_changelog,
    render_entry,
    update_changelog,
)
from pnpm_changelog.models import BumpType, DependencyUpdate

WHEN = datetime(2024, 1, 15, 12, 30, tzinfo=timezone.utc)


@pytest.fixture
def metadata() -> ChangelogMetadata:
    return ChangelogMetadata(
        last_commit_hash="abcdef1234567890",
        last_update_time=WHEN,
        package_name="@acme/core",
        package_path="packages/core",
    )


class TestFormatCommitMessage:
    """Tests for format_commit_message()."""

    @pytest.mark.parametrize(
        ("message", "expected"),
        [
            ("feat: add x", "Add x"),
            ("fix(api): handle empty body", "Handle empty body"),
            ("feat!: remove legacy api", "Remove legacy api"),
            ("Update readme", "Update readme"),
            ("docs: first line\n\nbody text", "First line"),
        ],
    )
    def test_strips_prefix(self, message: str, expected: str) -> None:
        assert format_commit_message(message) == expected


class TestRenderEntry:
    """Tests for render_entry()."""

    def test_groups_by_type_in_order(self) -> None:
        commits = [
            make_commit("1111111aaaa", "fix: patch bug", type="fix"),
            make_commit("2222222bbbb", "feat: add x", type="feat"),
            make_commit("3333333cccc", "Tweak wording"),
        ]

        text = render_entry(create_entry("1.1.0", commits, date=WHEN))

        assert text.splitlines()[0] == "## [1.1.0] - 2024-01-15"
        assert text.index("### ✨ Features") < text.index("### 🐛 Bug Fixes")
        assert text.index("### 🐛 Bug Fixes") < text.index("### 📝 Other")
        assert "- Add x ([2222222](../../commit/2222222bbbb))" in text
        assert "- Tweak wording ([3333333](../../commit/3333333cccc))" in text

    def test_breaking_section(self) -> None:
        commits = [make_commit("4444444dddd", "feat!: remove legacy api", type="feat")]

        entry = create_entry("2.0.0", commits, date=WHEN)
        text = render_entry(entry)

        assert entry.breaking is True
        assert "### ⚠️ Breaking Changes" in text
        assert "- Remove legacy api ([4444444](../../commit/4444444dddd))" in text
        assert "### ✨ Features" not in text

    def test_dependency_updates(self) -> None:
        updates = [
            DependencyUpdate(package="b", old_version="1.0.0", new_version="1.0.1", bump=BumpType.PATCH)
        ]

        text = render_entry(create_entry("1.0.1", [], updates, date=WHEN))

        assert "### 🔗 Dependency Updates" in text
        assert "- Updated `b` from 1.0.0 to 1.0.1 (patch)" in text

    def test_unknown_type_after_known(self) -> None:
        commits = [
            make_commit("5555555", "wip: thing", type="wip"),
            make_commit("6666666", "chore: deps", type="chore"),
        ]
        text = render_entry(create_entry("1.0.1", commits, date=WHEN))
        assert text.index("### 🔧 Chores") < text.index("### 🔧 wip")

    def test_entry_version(self) -> None:
        assert entry_version(render_entry(create_entry("3.2.1", [], date=WHEN))) == "3.2.1"
        assert entry_version("no header") is None


class TestParseRender:
    """Tests for parse_changelog() and render_changelog()."""

    def test_round_trip(self, metadata: ChangelogMetadata) -> None:
        doc = ChangelogDocument(
            title="@acme/core Changelog",
            metadata=metadata,
            preamble="All notable changes.",
            entries=[
                render_entry(create_entry("1.1.0", [make_commit("a" * 40, "feat: x")], date=WHEN)),
                "## [1.0.0] - 2023-12-01\n\n### 🐛 Bug Fixes\n\n- Old fix",
            ],
        )
        assert parse_changelog(render_changelog(doc)) == doc

    def test_round_trip_without_metadata(self) -> None:
        doc = ChangelogDocument(title="x Changelog", entries=["## [0.1.0] - 2024-01-01"])
        assert parse_changelog(render_changelog(doc)) == doc

    def test_metadata_block_layout(self, metadata: ChangelogMetadata) -> None:
        text = render_changelog(ChangelogDocument(title="T", metadata=metadata))
        lines = text.splitlines()

        assert lines[0] == "# T"
        assert lines[2] == "<!-- CHANGELOG_METADATA:"
        end = lines.index("-->")
        payload = json.loads("\n".join(lines[3:end]))
        assert list(payload) == ["lastCommitHash", "lastUpdateTime", "packageName", "packagePath"]
        assert payload["lastUpdateTime"] == "2024-01-15T12:30:00.000Z"
        assert lines[3] == "{"
        assert lines[4].startswith('  "lastCommitHash"')

    def test_unparsable_metadata_is_none(self, capsys: pytest.CaptureFixture[str]) -> None:
        text = "# T\n\n<!-- CHANGELOG_METADATA:\n{oops\n-->\n\n## [1.0.0] - 2024-01-01\n"

        doc = parse_changelog(text)

        assert doc.metadata is None
        assert doc.entries == ["## [1.0.0] - 2024-01-01"]
        assert "Warning:" in capsys.readouterr().err

    def test_plain_file(self) -> None:
        doc = parse_changelog("Just some notes.\n")
        assert doc.title == ""
        assert doc.preamble == "Just some notes."
        assert doc.entries == []


class TestUpdateChangelog:
    """Tests for update_changelog() and read_metadata()."""

    def test_creates_file(self, tmp_path: Path, metadata: ChangelogMetadata) -> None:
        path = tmp_path / "packages/core/CHANGELOG.md"

        update_changelog(path, "@acme/core", create_entry("1.0.0", [], date=WHEN), metadata)

        text = path.read_text()
        assert text.startswith("# @acme/core Changelog\n\n<!-- CHANGELOG_METADATA:\n")
        assert "## [1.0.0] - 2024-01-15" in text
        assert read_metadata(path) == metadata

    def test_new_entry_goes_first(self, tmp_path: Path, metadata: ChangelogMetadata) -> None:
        path = tmp_path / "CHANGELOG.md"
        update_changelog(path, "@acme/core", create_entry("1.0.0", [], date=WHEN), metadata)
        update_changelog(path, "@acme/core", create_entry("1.1.0", [], date=WHEN), metadata)

        doc = parse_changelog(path.read_text())

        assert [entry_version(e) for e in doc.entries] == ["1.1.0", "1.0.0"]

    def test_same_version_replaced(self, tmp_path: Path, metadata: ChangelogMetadata) -> None:
        path = tmp_path / "CHANGELOG.md"
        first = create_entry("1.0.0", [make_commit("1" * 40, "fix: first")], date=WHEN)
        second = create_entry("1.0.0", [make_commit("2" * 40, "fix: second")], date=WHEN)

        update_changelog(path, "@acme/core", first, metadata)
        update_changelog(path, "@acme/core", second, metadata)
        once = path.read_text()
        update_changelog(path, "@acme/core", second, metadata)

        assert once.count("## [1.0.0]") == 1
        assert "Second" in once and "First" not in once
        assert path.read_text() == once

    def test_metadata_replaced(self, tmp_path: Path, metadata: ChangelogMetadata) -> None:
        path = tmp_path / "CHANGELOG.md"
        update_changelog(path, "@acme/core", create_entry("1.0.0", [], date=WHEN), metadata)
        newer = metadata.model_copy(update={"last_commit_hash": "fff"})

        update_changelog(path, "@acme/core", create_entry("1.0.1", [], date=WHEN), newer)

        assert read_metadata(path).last_commit_hash == "fff"
        assert path.read_text().count("CHANGELOG_METADATA") == 1

    def test_keeps_existing_preamble(self, tmp_path: Path, metadata: ChangelogMetadata) -> None:
        path = tmp_path / "CHANGELOG.md"
        path.write_text("# Core\n\nHand-written intro.\n\n## [0.9.0] - 2023-01-01\n\n- Legacy\n")

        update_changelog(path, "@acme/core", create_entry("1.0.0", [], date=WHEN), metadata)

        doc = parse_changelog(path.read_text())
        assert doc.title == "Core"
        assert doc.preamble == "Hand-written intro."
        assert [entry_version(e) for e in doc.entries] == ["1.0.0", "0.9.0"]

    def test_read_metadata_missing_file(self, tmp_path: Path) -> None:
        assert read_metadata(tmp_path / "CHANGELOG.md") is None
