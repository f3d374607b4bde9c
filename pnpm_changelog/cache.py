"""Incremental commit cache.

Stores, per package, the hash of the last commit already written to its
changelog, so the next run only has to look at newer history. The cache is
advisory: changelog metadata is the durable record, and `rebuild_cache`
reconstructs the cache from it. A missing or corrupt cache file is never
fatal.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from .changelog import read_metadata
from .models import format_timestamp, normalize_timestamp, utc_now
from .shell import warn

CACHE_FILE_NAME = "cache.json"
DEFAULT_CACHE_DIR = ".changelog"
MAX_CACHE_AGE = timedelta(days=7)
# Timestamp of a cache that has never been updated; never fresh.
NEVER_UPDATED = datetime(1970, 1, 1, tzinfo=timezone.utc)


class CacheData(BaseModel):
    """Contents of cache.json."""

    model_config = ConfigDict(populate_by_name=True)

    last_commit_hash: str = Field(default="", alias="lastCommitHash")
    last_update_time: datetime = Field(default=NEVER_UPDATED, alias="lastUpdateTime")
    package_commits: dict[str, str] = Field(default_factory=dict, alias="packageCommits")

    @field_validator("last_update_time")
    @classmethod
    def _normalize_time(cls, value: datetime) -> datetime:
        return normalize_timestamp(value)

    @field_serializer("last_update_time")
    def _serialize_time(self, value: datetime) -> str:
        return format_timestamp(value)

    def to_json(self) -> str:
        return json.dumps(self.model_dump(by_alias=True), indent=2) + "\n"


class CacheStatus(BaseModel):
    exists: bool
    valid: bool
    last_update_time: datetime | None = None
    package_count: int = 0


class CacheManager:
    """Reads and writes `<root>/<cache_dir>/cache.json`.

    Every read goes to disk, so two managers on the same directory always
    agree. Nothing is created until the first write.
    """

    def __init__(self, root: Path, cache_dir: str = DEFAULT_CACHE_DIR) -> None:
        self.root = Path(root)
        self.cache_dir = self.root / cache_dir
        self.cache_file = self.cache_dir / CACHE_FILE_NAME

    def _load(self) -> CacheData | None:
        if not self.cache_file.is_file():
            return None
        try:
            return CacheData.model_validate_json(self.cache_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            warn(f"Ignoring unreadable cache file {self.cache_file}: {exc}")
            return None

    def read_cache(self) -> CacheData:
        """Return the cached data, or an empty cache if absent or corrupt."""
        return self._load() or CacheData()

    def write_cache(self, data: CacheData) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.cache_file.write_text(data.to_json(), encoding="utf-8")

    def get_last_commit(self, package: str) -> str | None:
        """Hash of the last commit incorporated into `package`'s changelog."""
        return self.read_cache().package_commits.get(package) or None

    def get_global_last_commit(self) -> str | None:
        return self.read_cache().last_commit_hash or None

    def get_all_package_commits(self) -> dict[str, str]:
        return dict(self.read_cache().package_commits)

    def record_last_commits(self, commits: Mapping[str, str]) -> None:
        """Merge package → hash entries into the cache and refresh its timestamp."""
        data = self.read_cache()
        data.package_commits.update(commits)
        data.last_update_time = utc_now()
        self.write_cache(data)

    def set_global_last_commit(self, commit_hash: str) -> None:
        data = self.read_cache()
        data.last_commit_hash = commit_hash
        data.last_update_time = utc_now()
        self.write_cache(data)

    def clear_cache(self) -> None:
        try:
            self.cache_file.unlink(missing_ok=True)
        except OSError as exc:
            warn(f"Could not remove cache file {self.cache_file}: {exc}")

    def is_valid(self, now: datetime | None = None) -> bool:
        """True if the cache exists and was updated less than seven days ago."""
        data = self._load()
        if data is None:
            return False
        now = normalize_timestamp(now or utc_now())
        return now - data.last_update_time < MAX_CACHE_AGE

    def get_cache_status(self, now: datetime | None = None) -> CacheStatus:
        data = self._load()
        if data is None:
            return CacheStatus(exists=False, valid=False)
        return CacheStatus(
            exists=True,
            valid=self.is_valid(now),
            last_update_time=data.last_update_time,
            package_count=len(data.package_commits),
        )

    def rebuild_cache(
        self, changelog_paths: Iterable[Path], *, persist: bool = True
    ) -> CacheData:
        """Reconstruct the cache from changelog metadata blocks.

        Changelogs without readable metadata are skipped. The most recently
        updated metadata supplies the global hash and timestamp. With
        `persist` False the result is returned without being written.
        """
        data = CacheData()
        newest: datetime | None = None
        for path in changelog_paths:
            metadata = read_metadata(path)
            if metadata is None:
                continue
            data.package_commits[metadata.package_name] = metadata.last_commit_hash
            if newest is None or metadata.last_update_time > newest:
                newest = metadata.last_update_time
                data.last_commit_hash = metadata.last_commit_hash
                data.last_update_time = metadata.last_update_time
        if persist:
            self.write_cache(data)
        return data
