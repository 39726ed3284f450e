"""
Local persistence for the ranked list and its backup history.

Two classes sit on top of the key-value Database:

    ListRepository: reads/writes the ranked list, the manual-order
                    snapshot and the sort settings
    BackupManager:  keeps a rolling history of at most 10 list snapshots

Failure Policy:
    Persistence is best-effort. Every read and write catches storage and
    serialization errors, logs them, and carries on: a failed save never
    reaches the caller, and corrupt stored data reads back as an empty
    list. Nothing here is ever partially applied.

Backup Lifecycle:
    - auto_backup() runs on every non-empty save, skipped when the list is
      identical to the most recent automatic backup
    - manual_backup() runs before risky operations (loading a playlist,
      importing a shared list)
    - cleanup_old_backups() drops automatic local backups older than 24h,
      then caps the history to the 10 most recent entries
"""

import json
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable

from top_albums.core.database import (
    BACKUPS_KEY,
    MANUAL_ORDER_KEY,
    RANKED_LIST_KEY,
    SETTINGS_KEY,
    Database,
)
from top_albums.core.exceptions import StorageError
from top_albums.core.logger import get_logger
from top_albums.library.models import Album, albums_from_dicts, albums_to_dicts
from top_albums.library.ranked_list import SortDirection, SortMode, TopList

logger = get_logger(__name__)


MAX_BACKUPS = 10
AUTO_BACKUP_MAX_AGE_MS = 24 * 60 * 60 * 1000
AUTO_PREFIX = "auto_"
MANUAL_PREFIX = "manual_"


class BackupSource(Enum):
    """Where the snapshotted list came from."""
    LOCAL = "local"
    REMOTE = "remote"
    SHARED = "shared"

    @classmethod
    def parse(cls, value: str) -> "BackupSource":
        # Older histories recorded Spotify loads as "spotify"
        if value == "spotify":
            return cls.REMOTE
        return cls(value)


@dataclass(frozen=True)
class BackupEntry:
    """
    One immutable snapshot of the ranked list.

    Attributes:
        id: "auto_<ms>" or "manual_<ms>" (suffixed on collision).
        timestamp: Creation time in epoch milliseconds.
        albums: The snapshotted ranked list.
        source: BackupSource of the snapshotted content.
        description: Human label shown in the backup list.
        playlist_id: Spotify playlist the content relates to, if any.
    """
    id: str
    timestamp: int
    albums: tuple[Album, ...]
    source: BackupSource
    description: str
    playlist_id: str | None = None

    @property
    def is_automatic(self) -> bool:
        return self.id.startswith(AUTO_PREFIX)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "albums": albums_to_dicts(list(self.albums)),
            "source": self.source.value,
            "description": self.description,
        }
        if self.playlist_id:
            data["playlistId"] = self.playlist_id
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "BackupEntry":
        """
        Raises:
            ValueError: If the entry is malformed.
        """
        if not isinstance(data, dict):
            raise ValueError("Backup entry must be an object")
        try:
            return cls(
                id=str(data["id"]),
                timestamp=int(data["timestamp"]),
                albums=tuple(albums_from_dicts(data["albums"])),
                source=BackupSource.parse(data.get("source", "local")),
                description=str(data.get("description", "")),
                playlist_id=data.get("playlistId"),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed backup entry: {e}") from e


def format_backup_age(timestamp: int, now: int) -> str:
    """
    Render a backup timestamp relative to now (both in epoch ms).

    Examples:
        format_backup_age(now - 30_000, now)      # "just now"
        format_backup_age(now - 5 * 60_000, now)  # "5min ago"
    """
    diff_ms = now - timestamp
    minutes = diff_ms // 60_000
    hours = diff_ms // 3_600_000
    days = diff_ms // 86_400_000

    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes}min ago"
    if hours < 24:
        return f"{hours}h ago"
    if days < 7:
        return f"{days}d ago"
    return datetime.fromtimestamp(timestamp / 1000).strftime("%d/%m/%y %H:%M")


class BackupManager:
    """
    Rolling backup history stored under BACKUPS_KEY.

    Entries are stored most recent first. The clock returns seconds (like
    time.time) and is injectable for tests.
    """

    def __init__(self, database: Database, clock: Callable[[], float] = time.time) -> None:
        self._database = database
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _read(self) -> list[BackupEntry]:
        try:
            raw = self._database.get_item(BACKUPS_KEY)
        except StorageError as e:
            logger.error(f"Could not read backup history: {e}")
            return []
        if raw is None:
            return []

        try:
            items = json.loads(raw)
        except ValueError as e:
            logger.error(f"Backup history under '{BACKUPS_KEY}' is corrupt, ignoring it: {e}")
            return []
        if not isinstance(items, list):
            logger.error(f"Backup history under '{BACKUPS_KEY}' is corrupt (not a list), ignoring it")
            return []

        entries = []
        for item in items:
            try:
                entries.append(BackupEntry.from_dict(item))
            except ValueError as e:
                logger.warning(f"Skipping unreadable backup entry: {e}")
        return entries

    def _write(self, entries: list[BackupEntry]) -> bool:
        try:
            self._database.set_item(BACKUPS_KEY, json.dumps([e.to_dict() for e in entries]))
            return True
        except (StorageError, TypeError, ValueError) as e:
            logger.error(f"Could not write backup history: {e}")
            return False

    def _new_id(self, prefix: str, timestamp: int, existing: list[BackupEntry]) -> str:
        taken = {entry.id for entry in existing}
        candidate = f"{prefix}{timestamp}"
        suffix = 1
        while candidate in taken:
            candidate = f"{prefix}{timestamp}_{suffix}"
            suffix += 1
        return candidate

    def _add(self, prefix: str, albums: list[Album], description: str,
             source: BackupSource, playlist_id: str | None) -> str | None:
        entries = self._read()
        timestamp = self._now_ms()
        entry = BackupEntry(
            id=self._new_id(prefix, timestamp, entries),
            timestamp=timestamp,
            albums=tuple(albums),
            source=source,
            description=description,
            playlist_id=playlist_id,
        )
        entries.insert(0, entry)
        if not self._write(entries[:MAX_BACKUPS]):
            return None
        logger.debug(f"Backup {entry.id} created ({len(albums)} albums, {source.value})")
        return entry.id

    def auto_backup(self, albums: list[Album], description: str = "Automatic backup") -> str | None:
        """
        Snapshot albums as an automatic local backup.

        Returns:
            The new backup id, or None when skipped (identical to the latest
            automatic backup) or when the write failed.
        """
        latest_auto = next((e for e in self._read() if e.is_automatic), None)
        if latest_auto is not None and list(latest_auto.albums) == list(albums):
            return None
        return self._add(AUTO_PREFIX, albums, description, BackupSource.LOCAL, None)

    def manual_backup(
        self,
        albums: list[Album],
        description: str,
        source: BackupSource = BackupSource.LOCAL,
        playlist_id: str | None = None
    ) -> str | None:
        """Snapshot albums on demand, typically right before a risky load."""
        return self._add(MANUAL_PREFIX, albums, description, source, playlist_id)

    def list_backups(self) -> list[BackupEntry]:
        """All backups, most recent first."""
        return sorted(self._read(), key=lambda e: e.timestamp, reverse=True)

    def get_backup(self, backup_id: str) -> BackupEntry | None:
        return next((e for e in self._read() if e.id == backup_id), None)

    def restore_backup(self, backup_id: str) -> list[Album] | None:
        """Return the snapshotted albums, or None if backup_id is unknown."""
        entry = self.get_backup(backup_id)
        return list(entry.albums) if entry else None

    def delete_backup(self, backup_id: str) -> bool:
        entries = self._read()
        remaining = [e for e in entries if e.id != backup_id]
        if len(remaining) == len(entries):
            return False
        return self._write(remaining)

    def cleanup_old_backups(self) -> int:
        """
        Drop stale automatic backups and enforce the history cap.

        Automatic local backups older than 24 hours are removed. Manual
        backups and backups of remote or shared content are kept whatever
        their age. The survivors are then capped to the MAX_BACKUPS most
        recent.

        Returns:
            Number of entries removed.
        """
        entries = self.list_backups()
        cutoff = self._now_ms() - AUTO_BACKUP_MAX_AGE_MS

        kept = [
            e for e in entries
            if e.source is not BackupSource.LOCAL
            or not e.is_automatic
            or e.timestamp > cutoff
        ][:MAX_BACKUPS]

        removed = len(entries) - len(kept)
        if removed:
            self._write(kept)
            logger.info(f"Removed {removed} old backup(s)")
        return removed


class ListRepository:
    """
    Reads and writes the ranked list, manual-order snapshot and sort settings.

    Every method is best-effort: errors are logged and never raised.
    """

    def __init__(self, database: Database, backups: BackupManager) -> None:
        self._database = database
        self._backups = backups

    @property
    def backups(self) -> BackupManager:
        return self._backups

    def _write_albums(self, key: str, albums: list[Album]) -> bool:
        try:
            self._database.set_item(key, json.dumps(albums_to_dicts(albums)))
            return True
        except (StorageError, TypeError, ValueError) as e:
            logger.error(f"Could not save '{key}': {e}")
            return False

    def _read_albums(self, key: str) -> list[Album]:
        try:
            raw = self._database.get_item(key)
        except StorageError as e:
            logger.error(f"Could not read '{key}': {e}")
            return []
        if raw is None:
            return []

        try:
            return albums_from_dicts(json.loads(raw))
        except ValueError as e:
            logger.error(f"Stored data under '{key}' is corrupt, starting empty: {e}")
            return []

    def save(self, albums: list[Album]) -> None:
        """Persist the ranked list and snapshot it into the backup history."""
        self._write_albums(RANKED_LIST_KEY, albums)
        if albums:
            self._backups.auto_backup(albums, f"Top 50 - {len(albums)} albums")

    def load(self) -> list[Album]:
        return self._read_albums(RANKED_LIST_KEY)

    def save_manual_order(self, albums: list[Album]) -> None:
        self._write_albums(MANUAL_ORDER_KEY, albums)

    def load_manual_order(self) -> list[Album]:
        return self._read_albums(MANUAL_ORDER_KEY)

    def save_settings(self, sort_mode: SortMode, sort_direction: SortDirection) -> None:
        payload = {"sortMode": sort_mode.value, "sortDirection": sort_direction.value}
        try:
            self._database.set_item(SETTINGS_KEY, json.dumps(payload))
        except StorageError as e:
            logger.error(f"Could not save sort settings: {e}")

    def load_settings(self) -> tuple[SortMode, SortDirection]:
        defaults = (SortMode.DATE, SortDirection.DESC)
        try:
            raw = self._database.get_item(SETTINGS_KEY)
        except StorageError as e:
            logger.error(f"Could not read sort settings: {e}")
            return defaults
        if raw is None:
            return defaults

        try:
            data = json.loads(raw)
            return SortMode(data["sortMode"]), SortDirection(data["sortDirection"])
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Stored sort settings are corrupt, using defaults: {e}")
            return defaults

    def load_top_list(self) -> TopList:
        sort_mode, sort_direction = self.load_settings()
        return TopList(
            albums=self.load(),
            manual_order=self.load_manual_order(),
            sort_mode=sort_mode,
            sort_direction=sort_direction,
        )

    def save_top_list(self, top_list: TopList) -> None:
        self.save(top_list.albums)
        self.save_manual_order(top_list.manual_order)
        self.save_settings(top_list.sort_mode, top_list.sort_direction)

    def clear(self) -> None:
        """Forget the ranked list and manual order (backups are kept)."""
        for key in (RANKED_LIST_KEY, MANUAL_ORDER_KEY):
            try:
                self._database.remove_item(key)
            except StorageError as e:
                logger.error(f"Could not clear '{key}': {e}")
