"""
Ranked list operations for top-albums.

A ranked list is a plain Python list of Album records where the index is
the rank (0 = first). This module holds:

    - Pure functions (add_album, remove_album, move_item, sort_by_year)
      that never mutate their input and do no I/O
    - TopList, the stateful model the CLI drives, which applies the
      ordering-mode rules on top of those functions

Ordering Modes:
    date:   the list is kept sorted by year (asc or desc); every add re-sorts
    manual: order is whatever the user made it; adds append, moves reorder

    manual -> date re-sorts destructively.
    date -> manual freezes the current order as the new manual baseline.

Soft Cap:
    A Top 50 may hold more than 50 albums. Going over only raises the
    `over_cap` flag on the add outcome; nothing is ever truncated.
"""

from dataclasses import dataclass, field
from enum import Enum

from top_albums.library.models import Album


SOFT_CAP = 50


class SortMode(Enum):
    DATE = "date"
    MANUAL = "manual"


class SortDirection(Enum):
    ASC = "asc"
    DESC = "desc"

    def flipped(self) -> "SortDirection":
        return SortDirection.ASC if self is SortDirection.DESC else SortDirection.DESC


@dataclass(frozen=True)
class AddResult:
    """Result of add_album(): the new list and whether anything was added."""
    albums: list[Album]
    added: bool


@dataclass(frozen=True)
class AddOutcome:
    """
    Result of TopList.add().

    Attributes:
        added: False when the album id was already in the list.
        over_cap: True when the list now holds more than SOFT_CAP albums.
        size: List length after the call.
    """
    added: bool
    over_cap: bool
    size: int


def add_album(albums: list[Album], album: Album) -> AddResult:
    """Append album unless its id is already present (then a no-op)."""
    if any(existing.id == album.id for existing in albums):
        return AddResult(albums=list(albums), added=False)
    return AddResult(albums=[*albums, album], added=True)


def remove_album(albums: list[Album], album_id: str) -> list[Album]:
    """Drop the album with album_id. Absent ids are ignored."""
    return [album for album in albums if album.id != album_id]


def move_item(albums: list[Album], from_index: int, to_index: int) -> list[Album]:
    """
    Move one album from from_index to to_index.

    Indices are 0-based positions in the current list. Out-of-range
    indices are rejected rather than clamped.

    Raises:
        IndexError: If either index is outside 0..len(albums)-1.
    """
    size = len(albums)
    for name, index in (("from_index", from_index), ("to_index", to_index)):
        if not 0 <= index < size:
            raise IndexError(f"{name} {index} out of range for list of {size}")

    result = list(albums)
    moved = result.pop(from_index)
    result.insert(to_index, moved)
    return result


def sort_by_year(albums: list[Album], direction: SortDirection) -> list[Album]:
    """
    Sort by release year.

    sorted() is stable in both directions, so albums sharing a year keep
    their relative input order.
    """
    return sorted(albums, key=lambda album: album.year, reverse=direction is SortDirection.DESC)


def same_albums(left: list[Album], right: list[Album]) -> bool:
    """True when both lists hold the same ids in the same order."""
    return [a.id for a in left] == [a.id for a in right]


def summarize(albums: list[Album]) -> str:
    """
    Short human description of a list's content.

    Examples:
        summarize([])           # "Empty"
        summarize([a])          # "1 album: Artist - Title"
        summarize([a, b, c])    # "3 albums: A, B, C"
        summarize(ten_albums)   # "10 albums: A, B and 8 others"
    """
    if not albums:
        return "Empty"
    if len(albums) == 1:
        return f"1 album: {albums[0].display_name}"
    if len(albums) <= 3:
        return f"{len(albums)} albums: " + ", ".join(a.artist for a in albums)
    return (
        f"{len(albums)} albums: "
        + ", ".join(a.artist for a in albums[:2])
        + f" and {len(albums) - 2} others"
    )


@dataclass
class TopList:
    """
    The user's Top 50 with its ordering mode.

    Attributes:
        albums: Current ranked list.
        manual_order: Last manual-mode order, persisted alongside the list.
        sort_mode: SortMode.DATE or SortMode.MANUAL.
        sort_direction: Direction used in date mode.
    """

    albums: list[Album] = field(default_factory=list)
    manual_order: list[Album] = field(default_factory=list)
    sort_mode: SortMode = SortMode.DATE
    sort_direction: SortDirection = SortDirection.DESC

    def __len__(self) -> int:
        return len(self.albums)

    @property
    def over_cap(self) -> bool:
        return len(self.albums) > SOFT_CAP

    def add(self, album: Album) -> AddOutcome:
        result = add_album(self.albums, album)
        if not result.added:
            return AddOutcome(added=False, over_cap=self.over_cap, size=len(self.albums))

        if self.sort_mode is SortMode.DATE:
            self.albums = sort_by_year(result.albums, self.sort_direction)
        else:
            self.albums = result.albums
            self.manual_order = list(result.albums)

        return AddOutcome(added=True, over_cap=self.over_cap, size=len(self.albums))

    def remove(self, album_id: str) -> bool:
        """Remove album_id; returns whether anything was removed."""
        remaining = remove_album(self.albums, album_id)
        removed = len(remaining) != len(self.albums)
        self.albums = remaining
        if self.sort_mode is SortMode.MANUAL:
            self.manual_order = list(remaining)
        return removed

    def move(self, from_index: int, to_index: int) -> None:
        """
        Reorder one album (manual mode only).

        Raises:
            ValueError: If the list is in date mode.
            IndexError: If an index is out of range.
        """
        if self.sort_mode is not SortMode.MANUAL:
            raise ValueError("Albums can only be moved in manual mode")
        self.albums = move_item(self.albums, from_index, to_index)
        self.manual_order = list(self.albums)

    def toggle_date_sort(self) -> SortDirection:
        """
        Enter date mode (descending) or, if already there, flip direction.

        Returns:
            The direction now in effect.
        """
        if self.sort_mode is SortMode.MANUAL:
            self.sort_mode = SortMode.DATE
            self.sort_direction = SortDirection.DESC
        else:
            self.sort_direction = self.sort_direction.flipped()
        self.albums = sort_by_year(self.albums, self.sort_direction)
        return self.sort_direction

    def switch_to_manual(self) -> bool:
        """
        Enter manual mode, freezing the current order as the manual baseline.

        Returns:
            False if the list was already in manual mode, True otherwise.
        """
        if self.sort_mode is SortMode.MANUAL:
            return False
        self.sort_mode = SortMode.MANUAL
        self.manual_order = list(self.albums)
        return True

    def replace(self, albums: list[Album]) -> None:
        """Take albums as-is (import, restore, playlist load) in manual mode."""
        self.albums = list(albums)
        self.manual_order = list(albums)
        self.sort_mode = SortMode.MANUAL

    def clear(self) -> None:
        self.albums = []
        self.manual_order = []
