"""Display ordering for setlists.

- Catalog: always artist, then title (case-insensitive). Stored positions are ignored.
- Other lists: either MANUAL (stored positions) or one of the tuning modes, which ranks songs by
  the rotated tuning priority, then artist, then title.

Sorting never writes positions. It only decides the order a view shows.
"""

from collections.abc import Iterable
from enum import Enum

from bandcatalog.domain.entities import SetlistSong
from bandcatalog.domain.value_objects.tuning import TuningSortMode, tuning_priority


class ListSortMode(str, Enum):
    """How a non-catalog list is displayed."""

    MANUAL = "manual"
    STANDARD = "standard"
    HALF_STEP = "half_step"
    FULL_STEP = "full_step"
    DROP_D = "drop_d"

    @property
    def tuning_mode(self) -> TuningSortMode | None:
        """Matching tuning mode, None for MANUAL."""
        if self is ListSortMode.MANUAL:
            return None
        return TuningSortMode(self.value)

    @property
    def is_manual(self) -> bool:
        return self is ListSortMode.MANUAL

    def next_tuning_mode(self) -> "ListSortMode":
        """Next tuning mode in the toggle cycle; MANUAL starts at Standard."""
        tuning_mode = self.tuning_mode
        if tuning_mode is None:
            return ListSortMode.STANDARD
        return ListSortMode(tuning_mode.next().value)


def _name_key(song: SetlistSong) -> tuple[str, str]:
    return (song.artist.casefold(), song.title.casefold())


class SortPolicy:
    """Deterministic display order rules."""

    def sort_catalog(self, songs: Iterable[SetlistSong]) -> list[SetlistSong]:
        """Artist then title, case-insensitive."""
        return sorted(songs, key=_name_key)

    def sort_manual(self, songs: Iterable[SetlistSong]) -> list[SetlistSong]:
        """Stored position order."""
        return sorted(songs, key=lambda s: s.position)

    def sort_by_tuning(
        self, songs: Iterable[SetlistSong], mode: TuningSortMode
    ) -> list[SetlistSong]:
        """Rotated tuning priority (per-list override wins), then artist, then title."""
        return sorted(
            songs,
            key=lambda s: (tuning_priority(s.effective_tuning, mode), *_name_key(s)),
        )

    def apply(
        self,
        songs: Iterable[SetlistSong],
        *,
        is_catalog: bool,
        mode: ListSortMode = ListSortMode.MANUAL,
    ) -> list[SetlistSong]:
        """Display order for a list."""
        if is_catalog:
            return self.sort_catalog(songs)
        tuning_mode = mode.tuning_mode
        if tuning_mode is None:
            return self.sort_manual(songs)
        return self.sort_by_tuning(songs, tuning_mode)
