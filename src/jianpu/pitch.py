"""
MIDI pitch to numbered-notation degree mapping.

Maps a MIDI pitch and a major-key tonic to the displayed scale degree (1-7),
its octave marker offset and an accidental. Only major-key spelling is
modeled.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from .constants import MAJOR_SCALE_INTERVALS, MIDDLE_C_MIDI
from .diagnostics import DiagnosticKind, DiagnosticLog


logger = logging.getLogger(__name__)


class Accidental(Enum):
    """Accidental drawn before a degree number."""
    NONE = "none"
    SHARP = "sharp"
    FLAT = "flat"


class ChromaticSpelling(Enum):
    """How non-diatonic intervals are spelled."""
    KEY_SIGNATURE = "key_signature"  # #1, b3, #4, b6, b7
    SHARPS = "sharps"                # #1, #2, #4, #5, #6


# Chromatic interval -> (diatonic interval it alters, accidental applied)
KEY_SIGNATURE_SPELLING: Dict[int, Tuple[int, Accidental]] = {
    1: (0, Accidental.SHARP),
    3: (4, Accidental.FLAT),
    6: (5, Accidental.SHARP),
    8: (9, Accidental.FLAT),
    10: (11, Accidental.FLAT),
}

SHARP_SPELLING: Dict[int, Tuple[int, Accidental]] = {
    1: (0, Accidental.SHARP),
    3: (2, Accidental.SHARP),
    6: (5, Accidental.SHARP),
    8: (7, Accidental.SHARP),
    10: (9, Accidental.SHARP),
}

SPELLING_TABLES = {
    ChromaticSpelling.KEY_SIGNATURE: KEY_SIGNATURE_SPELLING,
    ChromaticSpelling.SHARPS: SHARP_SPELLING,
}

FALLBACK_DEGREE = 1
FALLBACK_ACCIDENTAL = Accidental.SHARP


@dataclass(frozen=True)
class JianpuPitch:
    """
    Numbered-notation spelling of a pitch.

    Attributes:
        degree: Scale degree 1-7 relative to the key tonic
        octave_offset: Octave markers; positive above the number, negative below
        accidental: Accidental drawn before the number
    """
    degree: int
    octave_offset: int
    accidental: Accidental = Accidental.NONE

    @property
    def label(self) -> str:
        return format_degree(self.degree, self.accidental, self.octave_offset)


def format_degree(degree: int, accidental: Accidental, octave_offset: int = 0) -> str:
    """
    Plain-text form of a degree, e.g. '#4', "5'" (one octave up) or 'b7,,'.

    Octave markers above the number are written as apostrophes, markers
    below as commas.
    """
    prefix = {Accidental.SHARP: '#', Accidental.FLAT: 'b'}.get(accidental, '')
    marks = "'" * max(0, octave_offset) + ',' * max(0, -octave_offset)
    return f"{prefix}{degree}{marks}"


def tonic_reference(key: int) -> int:
    """
    MIDI pitch of the key tonic in the octave drawn without octave markers.

    C major uses C4 (60); every other tonic uses the occurrence just below
    middle C, e.g. G3 (55) for G major and F3 (53) for F major.
    """
    key_pitch_class = key % 12
    reference = MIDDLE_C_MIDI + key_pitch_class
    if key_pitch_class > MIDDLE_C_MIDI % 12:
        reference -= 12
    return reference


class PitchMapper:
    """
    Maps MIDI pitches to scale degrees within a major key.

    The seven diatonic intervals map straight to degrees 1-7; the five
    chromatic ones are resolved through a spelling table. The tables are
    injectable so alternative spellings can be plugged in.
    """

    def __init__(
        self,
        spelling: ChromaticSpelling = ChromaticSpelling.KEY_SIGNATURE,
        scale_intervals: Optional[Dict[int, int]] = None,
        chromatic_table: Optional[Dict[int, Tuple[int, Accidental]]] = None
    ):
        """
        Initialize pitch mapper.

        Args:
            spelling: Chromatic spelling convention
            scale_intervals: Diatonic interval -> degree table override
            chromatic_table: Chromatic interval -> (diatonic interval, accidental) override
        """
        self.spelling = spelling
        self.scale_intervals = scale_intervals if scale_intervals is not None else MAJOR_SCALE_INTERVALS
        self.chromatic_table = (
            chromatic_table if chromatic_table is not None else SPELLING_TABLES[spelling]
        )

    def map(
        self,
        pitch: int,
        key: int,
        diagnostics: Optional[DiagnosticLog] = None,
        quarter: Optional[float] = None
    ) -> JianpuPitch:
        """
        Map a MIDI pitch to its numbered-notation spelling.

        Never raises: an inconsistent table falls back to a sharpened
        degree 1 and records a diagnostic.

        Args:
            pitch: MIDI note number
            key: Major-key tonic pitch class (0=C ... 11=B)
            diagnostics: Log receiving fallback diagnostics (optional)
            quarter: Score position reported with diagnostics (optional)

        Returns:
            JianpuPitch with degree, octave offset and accidental
        """
        reference = tonic_reference(key)

        interval = (pitch - reference) % 12
        octave_offset = math.floor((pitch - reference) / 12)

        degree = self.scale_intervals.get(interval)
        if degree is not None:
            return JianpuPitch(degree=degree, octave_offset=octave_offset)

        altered = self.chromatic_table.get(interval)
        if altered is not None:
            base_interval, accidental = altered
            degree = self.scale_intervals.get(base_interval)
            if degree is not None:
                return JianpuPitch(
                    degree=degree,
                    octave_offset=octave_offset,
                    accidental=accidental
                )

        message = (
            f"No degree for MIDI {pitch} (interval {interval}) in key {key}; "
            f"using {FALLBACK_DEGREE} with a sharp"
        )
        if diagnostics is not None:
            diagnostics.record(DiagnosticKind.PITCH_FALLBACK, message, quarter)
        else:
            logger.warning(message)
        return JianpuPitch(
            degree=FALLBACK_DEGREE,
            octave_offset=octave_offset,
            accidental=FALLBACK_ACCIDENTAL
        )


_DEFAULT_MAPPER = PitchMapper()


def map_midi_to_jianpu(pitch: int, key: int) -> JianpuPitch:
    """Map a MIDI pitch with the default key-signature spelling."""
    return _DEFAULT_MAPPER.map(pitch, key)
