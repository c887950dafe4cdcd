"""Domain value objects."""

from bandcatalog.domain.value_objects.song_key import (
    SongKey,
    normalize_song_text,
    song_lookup_key,
    to_title_case,
)
from bandcatalog.domain.value_objects.tuning import (
    KNOWN_TUNINGS,
    Tuning,
    TuningSortMode,
    normalize_tuning,
    rotated_priority_order,
    tuning_label,
    tuning_priority,
)

__all__ = [
    "KNOWN_TUNINGS",
    "SongKey",
    "Tuning",
    "TuningSortMode",
    "normalize_song_text",
    "normalize_tuning",
    "rotated_priority_order",
    "song_lookup_key",
    "to_title_case",
    "tuning_label",
    "tuning_priority",
]
