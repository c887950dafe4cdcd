"""Tests for song identity normalization."""

from bandcatalog.domain.value_objects import (
    SongKey,
    normalize_song_text,
    song_lookup_key,
    to_title_case,
)


class TestTitleCase:
    """Test title casing."""

    def test_capitalizes_each_word(self) -> None:
        assert to_title_case("come together") == "Come Together"

    def test_lowercases_the_rest_of_each_word(self) -> None:
        assert to_title_case("THE BEATLES") == "The Beatles"

    def test_hyphen_starts_a_new_word(self) -> None:
        assert to_title_case("jay-z") == "Jay-Z"
        assert to_title_case("new-york city") == "New-York City"


class TestNormalizeSongText:
    """Test trimming and whitespace collapsing."""

    def test_trims_and_collapses_whitespace(self) -> None:
        assert normalize_song_text("  Come   Together ") == "Come Together"

    def test_tabs_and_newlines_count_as_whitespace(self) -> None:
        assert normalize_song_text("come\ttogether\n") == "Come Together"

    def test_none_and_blank_become_empty(self) -> None:
        assert normalize_song_text(None) == ""
        assert normalize_song_text("   ") == ""


class TestSongLookupKey:
    """Test the stored lookup form."""

    def test_folds_non_ascii_capitals(self) -> None:
        assert song_lookup_key("  Édith   PIAF ") == "édith piaf"

    def test_none_is_empty(self) -> None:
        assert song_lookup_key(None) == ""


class TestSongKey:
    """Test the dedup key."""

    def test_differently_typed_inputs_give_the_same_key(self) -> None:
        """Hey future me - this is the exact pair that must dedupe to one song."""
        first = SongKey.from_raw("band-1", "Come Together", "The Beatles")
        second = SongKey.from_raw("band-1", "  Come Together ", "the beatles")

        assert first == second
        assert first.folded == second.folded

    def test_band_is_part_of_the_key(self) -> None:
        first = SongKey.from_raw("band-1", "Song", "Artist")
        second = SongKey.from_raw("band-2", "Song", "Artist")

        assert first != second

    def test_is_complete_requires_title_and_artist(self) -> None:
        assert SongKey.from_raw("b", "Song", "Artist").is_complete()
        assert not SongKey.from_raw("b", "  ", "Artist").is_complete()
        assert not SongKey.from_raw("b", "Song", None).is_complete()
