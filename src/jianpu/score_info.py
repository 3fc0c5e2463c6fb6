"""
Score input data structures.

Holds the raw, unordered note collection plus the sparse tempo, key and
time signature change lists a score-loading collaborator hands to the engine.
All positions are expressed in quarter notes.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from .constants import DEFAULT_KEY, DEFAULT_QPM, DEFAULT_TIME_SIGNATURE, PITCH_CLASS_NAMES
from .diagnostics import Diagnostic, DiagnosticKind


@dataclass(frozen=True)
class NoteEvent:
    """
    Represents a single timestamped note as received.

    Attributes:
        start: Onset in quarter notes (>= 0)
        length: Duration in quarter notes (> 0)
        pitch: MIDI note number (0-127)
        intensity: MIDI velocity (0-127, default 80)
    """
    start: float
    length: float
    pitch: int
    intensity: int = 80

    def __post_init__(self):
        """Validate note parameters."""
        if self.start < 0:
            raise ValueError(f"Invalid start: {self.start}. Must be >= 0.")
        if self.length <= 0:
            raise ValueError(f"Invalid length: {self.length}. Must be > 0.")
        if not 0 <= self.pitch <= 127:
            raise ValueError(f"Invalid pitch: {self.pitch}. Must be 0-127.")
        if not 0 <= self.intensity <= 127:
            raise ValueError(f"Invalid intensity: {self.intensity}. Must be 0-127.")

    @property
    def end(self) -> float:
        """Calculate note end in quarter notes."""
        return self.start + self.length

    @property
    def pitch_name(self) -> str:
        """Convert MIDI pitch to note name (e.g., 60 -> C4)."""
        octave = (self.pitch // 12) - 1
        return f"{PITCH_CLASS_NAMES[self.pitch % 12]}{octave}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'start': self.start,
            'length': self.length,
            'pitch': self.pitch,
            'intensity': self.intensity,
        }


@dataclass(frozen=True)
class TempoEvent:
    """Tempo change: quarters per minute from `start` on."""
    start: float
    qpm: float

    def __post_init__(self):
        if self.start < 0:
            raise ValueError(f"Invalid start: {self.start}. Must be >= 0.")
        if self.qpm <= 0:
            raise ValueError(f"Invalid qpm: {self.qpm}. Must be > 0.")

    def to_dict(self) -> Dict[str, Any]:
        return {'start': self.start, 'qpm': self.qpm}


@dataclass(frozen=True)
class KeyEvent:
    """Key signature change: major-key tonic pitch class (0=C ... 11=B)."""
    start: float
    key: int

    def __post_init__(self):
        if self.start < 0:
            raise ValueError(f"Invalid start: {self.start}. Must be >= 0.")
        if not 0 <= self.key <= 11:
            raise ValueError(f"Invalid key: {self.key}. Must be 0-11.")

    @property
    def tonic_name(self) -> str:
        return PITCH_CLASS_NAMES[self.key]

    def to_dict(self) -> Dict[str, Any]:
        return {'start': self.start, 'key': self.key}


@dataclass(frozen=True)
class TimeSignatureEvent:
    """Time signature change (3/4 holds numerator 3, denominator 4)."""
    start: float
    numerator: int
    denominator: int

    def __post_init__(self):
        if self.start < 0:
            raise ValueError(f"Invalid start: {self.start}. Must be >= 0.")
        if self.numerator <= 0 or self.denominator <= 0:
            raise ValueError(
                f"Invalid time signature: {self.numerator}/{self.denominator}"
            )

    @property
    def measure_length(self) -> float:
        return measure_length(self)

    @property
    def beat_length(self) -> float:
        """Length of one beat in quarter notes."""
        return 4 / self.denominator

    def to_dict(self) -> Dict[str, Any]:
        return {
            'start': self.start,
            'numerator': self.numerator,
            'denominator': self.denominator,
        }


DEFAULT_TEMPO = TempoEvent(start=0.0, qpm=DEFAULT_QPM)
DEFAULT_KEY_SIGNATURE = KeyEvent(start=0.0, key=DEFAULT_KEY)
DEFAULT_TIME_SIGNATURE_EVENT = TimeSignatureEvent(
    start=0.0,
    numerator=DEFAULT_TIME_SIGNATURE[0],
    denominator=DEFAULT_TIME_SIGNATURE[1]
)


def measure_length(time_signature: TimeSignatureEvent) -> float:
    """
    Calculate the number of quarters that fit in a measure.

    4/4 holds 4 quarters, 3/4 holds 3 and 6/8 holds 3 (six eighths).
    """
    return time_signature.numerator * 4 / time_signature.denominator


@dataclass
class ScoreInfo:
    """
    Bare minimal information about a single numbered-notation score.

    Attributes:
        notes: All notes, in any order
        tempos: Tempo changes (sorted on normalization)
        key_signatures: Key signature changes (sorted on normalization)
        time_signatures: Time signature changes (sorted on normalization)
    """
    notes: List[NoteEvent] = field(default_factory=list)
    tempos: List[TempoEvent] = field(default_factory=list)
    key_signatures: List[KeyEvent] = field(default_factory=list)
    time_signatures: List[TimeSignatureEvent] = field(default_factory=list)

    @property
    def end(self) -> float:
        """Score end in quarter notes (latest note end)."""
        if not self.notes:
            return 0.0
        return max(note.end for note in self.notes)

    @property
    def note_count(self) -> int:
        return len(self.notes)

    def normalized(self, default_key: Optional[int] = None) -> 'ScoreInfo':
        """
        Build a normalized copy ready for the engine.

        Notes are sorted by start (stable for equal starts) and every change
        list is sorted and guaranteed to hold an entry at time 0, synthesizing
        defaults (60 qpm, C major, 4/4) where data is missing.

        Args:
            default_key: Tonic used when no key signature exists at time 0

        Returns:
            New ScoreInfo; this instance is left untouched
        """
        starting_key = DEFAULT_KEY_SIGNATURE
        if default_key is not None:
            starting_key = KeyEvent(start=0.0, key=default_key % 12)

        return ScoreInfo(
            notes=sorted(self.notes, key=lambda n: n.start),
            tempos=self._with_origin(self.tempos, DEFAULT_TEMPO),
            key_signatures=self._with_origin(self.key_signatures, starting_key),
            time_signatures=self._with_origin(self.time_signatures, DEFAULT_TIME_SIGNATURE_EVENT),
        )

    @staticmethod
    def _with_origin(events: List[Any], default: Any) -> List[Any]:
        ordered = sorted(events, key=lambda e: e.start)
        if not ordered:
            return [default]
        if ordered[0].start > 1e-6:
            ordered.insert(0, replace(default, start=0.0))
        return ordered

    def to_dict(self) -> Dict[str, Any]:
        """Convert score to the JSON interchange representation."""
        return {
            'notes': [note.to_dict() for note in self.notes],
            'tempos': [tempo.to_dict() for tempo in self.tempos],
            'keySignatures': [key.to_dict() for key in self.key_signatures],
            'timeSignatures': [ts.to_dict() for ts in self.time_signatures],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Tuple['ScoreInfo', List[Diagnostic]]:
        """
        Parse the JSON interchange representation.

        Malformed entries are skipped and reported instead of aborting.

        Args:
            data: Dict with 'notes' and optional 'tempos', 'keySignatures'
                  and 'timeSignatures' lists (snake_case names also accepted)

        Returns:
            Tuple of (ScoreInfo, diagnostics for skipped entries)
        """
        diagnostics: List[Diagnostic] = []

        def parse(entries, builder, label):
            parsed = []
            if entries is None:
                return parsed
            if not isinstance(entries, list):
                diagnostics.append(Diagnostic(
                    kind=DiagnosticKind.MALFORMED_INPUT,
                    message=f"Skipped {label} list: expected a list, got {type(entries).__name__}"
                ))
                return parsed
            for index, entry in enumerate(entries):
                try:
                    parsed.append(builder(entry))
                except (KeyError, TypeError, ValueError) as e:
                    diagnostics.append(Diagnostic(
                        kind=DiagnosticKind.MALFORMED_INPUT,
                        message=f"Skipped {label} #{index}: {e!r}"
                    ))
            return parsed

        notes = parse(
            data.get('notes'),
            lambda e: NoteEvent(
                start=float(e['start']),
                length=float(e['length']),
                pitch=int(e['pitch']),
                intensity=int(e.get('intensity', e.get('velocity', 80)))
            ),
            'note'
        )
        tempos = parse(
            data.get('tempos'),
            lambda e: TempoEvent(start=float(e['start']), qpm=float(e['qpm'])),
            'tempo'
        )
        keys = parse(
            _first_present(data, 'keySignatures', 'key_signatures'),
            lambda e: KeyEvent(start=float(e['start']), key=int(e['key'])),
            'key signature'
        )
        time_signatures = parse(
            _first_present(data, 'timeSignatures', 'time_signatures'),
            lambda e: TimeSignatureEvent(
                start=float(e['start']),
                numerator=int(e['numerator']),
                denominator=int(e['denominator'])
            ),
            'time signature'
        )

        score = cls(
            notes=notes,
            tempos=tempos,
            key_signatures=keys,
            time_signatures=time_signatures
        )
        return score, diagnostics


def _first_present(data: Dict[str, Any], *names: str) -> Optional[List[Any]]:
    for name in names:
        if data.get(name) is not None:
            return data[name]
    return None
