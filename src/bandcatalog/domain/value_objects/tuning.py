"""Tuning vocabulary and tuning-priority sort modes.

Two separate concerns live here:

1. normalize_tuning() turns free-text input ("Eb", "Drop D tuning", "Standard (E A D G B e)")
   into one of our canonical tuning ids. Unknown input returns None.
2. TuningSortMode + tuning_priority() define the rotating priority used when a performance
   list is sorted by tuning instead of manual position.
"""

import re
from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class Tuning:
    """A canonical tuning id with its display label."""

    id: str
    label: str


STANDARD_E = Tuning("standard_e", "Standard")
HALF_STEP_DOWN = Tuning("half_step_down", "Half-Step")
WHOLE_STEP_DOWN = Tuning("whole_step_down", "Full-Step")
D_STANDARD = Tuning("d_standard", "D Standard")
DROP_D = Tuning("drop_d", "Drop D")
DROP_C_SHARP = Tuning("drop_c_sharp", "Drop C#")
DROP_C = Tuning("drop_c", "Drop C")
DROP_B = Tuning("drop_b", "Drop B")
DROP_A = Tuning("drop_a", "Drop A")
C_STANDARD = Tuning("c_standard", "C Standard")
B_STANDARD = Tuning("b_standard", "B Standard")
OPEN_G = Tuning("open_g", "Open G")
OPEN_D = Tuning("open_d", "Open D")
OPEN_E = Tuning("open_e", "Open E")
OPEN_A = Tuning("open_a", "Open A")
OPEN_C = Tuning("open_c", "Open C")

KNOWN_TUNINGS: dict[str, Tuning] = {
    t.id: t
    for t in (
        STANDARD_E,
        HALF_STEP_DOWN,
        WHOLE_STEP_DOWN,
        D_STANDARD,
        DROP_D,
        DROP_C_SHARP,
        DROP_C,
        DROP_B,
        DROP_A,
        C_STANDARD,
        B_STANDARD,
        OPEN_G,
        OPEN_D,
        OPEN_E,
        OPEN_A,
        OPEN_C,
    )
}

# Lower-cased, parenthesis-stripped input -> canonical tuning.
_ALIASES: dict[str, Tuning] = {
    "standard": STANDARD_E,
    "e standard": STANDARD_E,
    "e": STANDARD_E,
    "half-step": HALF_STEP_DOWN,
    "half step": HALF_STEP_DOWN,
    "half step down": HALF_STEP_DOWN,
    "half-step down": HALF_STEP_DOWN,
    "eb standard": HALF_STEP_DOWN,
    "eb": HALF_STEP_DOWN,
    "e♭": HALF_STEP_DOWN,
    "e flat": HALF_STEP_DOWN,
    "full-step": WHOLE_STEP_DOWN,
    "full step": WHOLE_STEP_DOWN,
    "full step down": WHOLE_STEP_DOWN,
    "full-step down": WHOLE_STEP_DOWN,
    "whole step down": WHOLE_STEP_DOWN,
    "whole-step down": WHOLE_STEP_DOWN,
    "d standard": D_STANDARD,
    "drop d": DROP_D,
    "drop c#": DROP_C_SHARP,
    "drop c♯": DROP_C_SHARP,
    "drop db": DROP_C_SHARP,
    "drop d♭": DROP_C_SHARP,
    "drop c": DROP_C,
    "drop b": DROP_B,
    "drop a": DROP_A,
    "c standard": C_STANDARD,
    "b standard": B_STANDARD,
    "open g": OPEN_G,
    "open d": OPEN_D,
    "open e": OPEN_E,
    "open a": OPEN_A,
    "open c": OPEN_C,
}

_PARENTHETICAL_RE = re.compile(r"\s*\([^)]*\)")
_TRAILING_TUNING_RE = re.compile(r"\s+tuning$")


def normalize_tuning(value: str | None) -> Tuning | None:
    """Map free-text tuning input to a canonical tuning.

    Handles canonical ids ("drop_d"), labels ("Drop D"), parentheticals
    ("Standard (E A D G B e)") and a trailing "tuning" word ("Drop D tuning").

    Returns:
        The canonical Tuning, or None if blank or not recognized.
    """
    if value is None:
        return None
    cleaned = value.strip().lower()
    if not cleaned:
        return None
    if cleaned in KNOWN_TUNINGS:
        return KNOWN_TUNINGS[cleaned]
    cleaned = _PARENTHETICAL_RE.sub("", cleaned)
    cleaned = _TRAILING_TUNING_RE.sub("", cleaned).strip()
    if cleaned in KNOWN_TUNINGS:
        return KNOWN_TUNINGS[cleaned]
    return _ALIASES.get(cleaned)


def tuning_label(tuning_id: str | None) -> str | None:
    """Display label for a stored tuning id (unknown ids are shown as-is)."""
    if tuning_id is None:
        return None
    known = KNOWN_TUNINGS.get(tuning_id)
    return known.label if known else tuning_id


# Hey future me - TuningSortMode is the USER-FACING toggle. The button cycles
# Standard -> Half-Step -> Full-Step -> Drop D -> Standard (that's the enum order and next()).
# The PRIORITY order is different: standard, drop_d, half_step, full_step. Selecting a mode
# ROTATES that priority list so the selected group comes first and the rest wrap around.
# Don't "simplify" this into "selected first, rest fixed" - drop_d first gives
# drop_d, half_step, full_step, standard, not drop_d, standard, half_step, full_step.
class TuningSortMode(str, Enum):
    """Tuning sort mode for performance lists."""

    STANDARD = "standard"
    HALF_STEP = "half_step"
    FULL_STEP = "full_step"
    DROP_D = "drop_d"

    @property
    def label(self) -> str:
        return _MODE_LABELS[self]

    def next(self) -> "TuningSortMode":
        """Next mode in the toggle cycle."""
        modes = list(TuningSortMode)
        return modes[(modes.index(self) + 1) % len(modes)]


_MODE_LABELS: dict[TuningSortMode, str] = {
    TuningSortMode.STANDARD: "Standard",
    TuningSortMode.HALF_STEP: "Half-Step",
    TuningSortMode.FULL_STEP: "Full-Step",
    TuningSortMode.DROP_D: "Drop D",
}

BASE_PRIORITY_ORDER: tuple[TuningSortMode, ...] = (
    TuningSortMode.STANDARD,
    TuningSortMode.DROP_D,
    TuningSortMode.HALF_STEP,
    TuningSortMode.FULL_STEP,
)

# Stored tuning id -> sort group. D standard and whole-step-down are the same pitch.
_SORT_GROUPS: dict[str, TuningSortMode] = {
    STANDARD_E.id: TuningSortMode.STANDARD,
    HALF_STEP_DOWN.id: TuningSortMode.HALF_STEP,
    WHOLE_STEP_DOWN.id: TuningSortMode.FULL_STEP,
    D_STANDARD.id: TuningSortMode.FULL_STEP,
    DROP_D.id: TuningSortMode.DROP_D,
}

NO_TUNING_PRIORITY = 999
UNKNOWN_TUNING_BASE_PRIORITY = 100


def rotated_priority_order(mode: TuningSortMode) -> tuple[TuningSortMode, ...]:
    """Base priority order rotated so that `mode` comes first."""
    start = BASE_PRIORITY_ORDER.index(mode)
    return BASE_PRIORITY_ORDER[start:] + BASE_PRIORITY_ORDER[:start]


def tuning_sort_group(tuning: str | None) -> TuningSortMode | None:
    """Sort group for a stored tuning value (id or free text), None if outside the groups."""
    if tuning is None:
        return None
    lowered = tuning.strip().lower()
    if lowered in _SORT_GROUPS:
        return _SORT_GROUPS[lowered]
    try:
        return TuningSortMode(lowered)
    except ValueError:
        pass
    normalized = normalize_tuning(tuning)
    if normalized is None:
        return None
    return _SORT_GROUPS.get(normalized.id)


def tuning_priority(tuning: str | None, mode: TuningSortMode) -> int:
    """Sort priority of a tuning under the selected mode (lower sorts first).

    - 0..3 for the four grouped tunings, in rotated order
    - 100 + first character code for any other tuning
    - 999 when the song has no tuning at all
    """
    if tuning is None or not tuning.strip():
        return NO_TUNING_PRIORITY
    group = tuning_sort_group(tuning)
    if group is not None:
        return rotated_priority_order(mode).index(group)
    return UNKNOWN_TUNING_BASE_PRIORITY + ord(tuning.strip().lower()[0])
