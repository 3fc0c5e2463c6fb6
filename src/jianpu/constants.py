"""
Shared constants for the numbered-notation engine.

All engine arithmetic happens on an integer tick grid so block identity and
boundary checks never depend on floating point comparisons.
"""

from typing import Dict, Tuple


# 16 * 3 * 5: sixty-fourth notes plus their triplet and quintuplet subdivisions
TICKS_PER_QUARTER = 240

# 1/16 of a quarter (a 64th note), the smallest value drawn with underlines
MIN_RESOLUTION = 0.0625
MIN_RESOLUTION_TICKS = 15

# Blocks keyed by start are compared with this tolerance in quarter units
QUARTER_TOLERANCE = 1e-6

MIDDLE_C_MIDI = 60

PITCH_CLASS_NAMES = ['C', 'C#', 'D', 'D#', 'E', 'F', 'F#', 'G', 'G#', 'A', 'A#', 'B']

# Number of sharps (positive) or flats (negative) in each major key, by tonic
KEY_SIGNATURE_SHARPS: Dict[int, int] = {
    0: 0, 7: 1, 2: 2, 9: 3, 4: 4, 11: 5, 6: 6,
    5: -1, 10: -2, 3: -3, 8: -4, 1: -5,
}

# Semitone interval above the tonic -> major scale degree
MAJOR_SCALE_INTERVALS: Dict[int, int] = {
    0: 1,
    2: 2,
    4: 3,
    5: 4,
    7: 5,
    9: 6,
    11: 7,
}

DEFAULT_QPM = 60.0
DEFAULT_KEY = 0
DEFAULT_TIME_SIGNATURE: Tuple[int, int] = (4, 4)

# Standard symbol lengths in ticks, longest first
DOTTED_WHOLE = 1440
WHOLE = 960
DOTTED_HALF = 720
HALF = 480
DOTTED_QUARTER = 360
QUARTER = 240
DOTTED_EIGHTH = 180
EIGHTH = 120
DOTTED_SIXTEENTH = 90
SIXTEENTH = 60
THIRTY_SECOND = 30
SIXTY_FOURTH = 15

PLAIN_LENGTHS: Tuple[int, ...] = (
    WHOLE, HALF, QUARTER, EIGHTH, SIXTEENTH, THIRTY_SECOND, SIXTY_FOURTH,
)
DOTTED_LENGTHS: Tuple[int, ...] = (
    DOTTED_WHOLE, DOTTED_HALF, DOTTED_QUARTER, DOTTED_EIGHTH, DOTTED_SIXTEENTH,
)
STANDARD_LENGTHS: Tuple[int, ...] = tuple(sorted(PLAIN_LENGTHS + DOTTED_LENGTHS, reverse=True))

# Undotted symbol classes: (minimum ticks, duration lines, dash for notes)
SYMBOL_CLASSES: Tuple[Tuple[int, int, bool], ...] = (
    (WHOLE, 0, True),
    (HALF, 0, True),
    (QUARTER, 0, False),
    (EIGHTH, 1, False),
    (SIXTEENTH, 2, False),
    (THIRTY_SECOND, 3, False),
    (SIXTY_FOURTH, 4, False),
)

# Dotted symbols: exact length -> (duration lines of the undotted base, dash)
DOTTED_SYMBOLS: Dict[int, Tuple[int, bool]] = {
    DOTTED_WHOLE: (0, True),
    DOTTED_HALF: (0, True),
    DOTTED_QUARTER: (0, False),
    DOTTED_EIGHTH: (1, False),
    DOTTED_SIXTEENTH: (2, False),
}


def to_ticks(quarters: float) -> int:
    """Snap a quarter-note quantity to the nearest engine tick."""
    return int(round(quarters * TICKS_PER_QUARTER))


def to_quarters(ticks: int) -> float:
    """Convert engine ticks back to quarter notes."""
    return ticks / TICKS_PER_QUARTER
