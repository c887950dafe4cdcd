"""Song identity normalization.

Hey future me - this is THE dedup rule for songs. Two inputs are the same song when
band + normalized title + normalized artist match. "the beatles" / "  The Beatles " /
"THE BEATLES" all normalize to "The Beatles". Whatever you change here changes which
songs collapse together. The unique index on songs sits on title_key/artist_key, which
song_lookup_key() fills in Python; SQLite lower() only folds ASCII, so never match in SQL.
"""

import re
from dataclasses import dataclass

_WHITESPACE_RE = re.compile(r"\s+")


def to_title_case(value: str) -> str:
    """Title-case a string: words split on spaces and hyphens.

    The first letter of each word is upper-cased and the rest lower-cased.

    Examples:
        >>> to_title_case("new-york city")
        'New-York City'
        >>> to_title_case("TESTING case")
        'Testing Case'
    """
    chars: list[str] = []
    capitalize_next = True
    for char in value:
        if char in (" ", "-"):
            chars.append(char)
            capitalize_next = True
        elif capitalize_next:
            chars.append(char.upper())
            capitalize_next = False
        else:
            chars.append(char.lower())
    return "".join(chars)


def normalize_song_text(value: str | None) -> str:
    """Trim, collapse internal whitespace and title-case a title or artist.

    Returns an empty string for None/blank input; callers decide if that's an error.
    """
    if value is None:
        return ""
    collapsed = _WHITESPACE_RE.sub(" ", value).strip()
    return to_title_case(collapsed)


def song_lookup_key(value: str | None) -> str:
    """Case-folded, whitespace-collapsed form of a title or artist, stored for lookups."""
    if value is None:
        return ""
    return _WHITESPACE_RE.sub(" ", value).strip().casefold()


@dataclass(frozen=True)
class SongKey:
    """Dedup key for a song within a band."""

    band_id: str
    title: str
    artist: str

    @classmethod
    def from_raw(cls, band_id: str, title: str | None, artist: str | None) -> "SongKey":
        """Build the key from raw user input."""
        return cls(
            band_id=band_id,
            title=normalize_song_text(title),
            artist=normalize_song_text(artist),
        )

    @property
    def folded(self) -> tuple[str, str, str]:
        """Case-folded tuple, used for in-memory comparisons."""
        return (self.band_id, self.title.casefold(), self.artist.casefold())

    def is_complete(self) -> bool:
        """True if both title and artist are non-empty after normalization."""
        return bool(self.title) and bool(self.artist)
