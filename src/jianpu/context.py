"""
Measure/context index.

Precomputes, for every minimum-resolution chunk of the score, which tempo,
key and time signature are active and where inside its measure the chunk
falls. Chunks are uniformly spaced, so every query is a direct array index.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .constants import (
    MIN_RESOLUTION_TICKS,
    QUARTER_TOLERANCE,
    TICKS_PER_QUARTER,
    to_quarters,
    to_ticks,
)
from .score_info import KeyEvent, ScoreInfo, TempoEvent, TimeSignatureEvent


logger = logging.getLogger(__name__)

# Beat alignment tolerance, in beats (half of the minimum resolution)
BEAT_TOLERANCE = 1 / 32


@dataclass(frozen=True)
class MeasureContext:
    """
    Structural info applying from a chunk start up to the next chunk.

    Attributes:
        start_tick: Chunk start in ticks
        measure_number: Integer part is the measure (from 1), fraction the position within
        measure_length: Measure length in quarter notes
        tempo: Active tempo
        key_signature: Active key signature
        time_signature: Active time signature
        tempo_change: Tempo changed at this chunk
        key_change: Key signature changed at this chunk
        time_change: Time signature changed at this chunk
    """
    start_tick: int
    measure_number: float
    measure_length: float
    tempo: TempoEvent
    key_signature: KeyEvent
    time_signature: TimeSignatureEvent
    tempo_change: bool = False
    key_change: bool = False
    time_change: bool = False

    @property
    def start(self) -> float:
        return to_quarters(self.start_tick)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'start': self.start,
            'measureNumber': self.measure_number,
            'measureLength': self.measure_length,
            'qpm': self.tempo.qpm,
            'key': self.key_signature.key,
            'timeSignature': [self.time_signature.numerator, self.time_signature.denominator],
            'tempoChange': self.tempo_change,
            'keyChange': self.key_change,
            'timeChange': self.time_change,
        }


class ContextIndex:
    """
    Fixed-resolution lookup table of the score structure.

    Change events are snapped to the nearest chunk; when several events of
    one kind land on the same chunk the last one wins. Events past the score
    end never become active. Every query clamps out-of-range positions to
    the first or last chunk instead of raising.
    """

    def __init__(self, score: ScoreInfo, end_tick: int):
        """
        Build the chunk tables.

        Args:
            score: Normalized score (change lists sorted and starting at 0)
            end_tick: Score end in ticks
        """
        self.end_tick = max(0, end_tick)
        self.tempos: List[TempoEvent] = list(score.tempos)
        self.key_signatures: List[KeyEvent] = list(score.key_signatures)
        self.time_signatures: List[TimeSignatureEvent] = list(score.time_signatures)

        self.num_chunks = self.end_tick // MIN_RESOLUTION_TICKS + 1
        chunk_indices = np.arange(self.num_chunks)
        self.chunk_ticks = chunk_indices * MIN_RESOLUTION_TICKS

        self.tempo_index, self.tempo_changes = self._activate(self.tempos, chunk_indices)
        self.key_index, self.key_changes = self._activate(self.key_signatures, chunk_indices)
        self.time_index, self.time_changes = self._activate(self.time_signatures, chunk_indices)

        self.measure_length_ticks = np.array(
            [ts.numerator * 4 * TICKS_PER_QUARTER / ts.denominator for ts in self.time_signatures],
            dtype=np.float64
        )[self.time_index]
        self.measure_numbers = self._number_measures()

        logger.debug(
            f"Context index: {self.num_chunks} chunks, "
            f"{len(self.tempos)} tempos, {len(self.key_signatures)} keys, "
            f"{len(self.time_signatures)} time signatures"
        )

    @staticmethod
    def _apply_chunks(events: Sequence[Any]) -> np.ndarray:
        return np.array(
            [int(round(to_ticks(e.start) / MIN_RESOLUTION_TICKS)) for e in events],
            dtype=np.int64
        )

    def _activate(
        self,
        events: Sequence[Any],
        chunk_indices: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Resolve the active event per chunk.

        Returns:
            Tuple of (active event index per chunk, change flag per chunk)
        """
        apply_chunks = self._apply_chunks(events)
        active = np.searchsorted(apply_chunks, chunk_indices, side='right') - 1
        active = np.clip(active, 0, None)

        changes = np.zeros(self.num_chunks, dtype=bool)
        in_range = apply_chunks[apply_chunks < self.num_chunks]
        changes[in_range] = True
        return active, changes

    def _number_measures(self) -> np.ndarray:
        """
        Compute the float measure number of every chunk.

        Each time signature segment continues the numbering from where the
        previous one stopped, measured from the chunk the change applies at.
        """
        apply_chunks = self._apply_chunks(self.time_signatures)
        segment_starts = apply_chunks * MIN_RESOLUTION_TICKS
        segment_lengths = np.array(
            [ts.numerator * 4 * TICKS_PER_QUARTER / ts.denominator for ts in self.time_signatures],
            dtype=np.float64
        )

        bases = np.ones(len(self.time_signatures), dtype=np.float64)
        for k in range(1, len(self.time_signatures)):
            elapsed = segment_starts[k] - segment_starts[k - 1]
            bases[k] = bases[k - 1] + elapsed / segment_lengths[k - 1]

        idx = self.time_index
        return bases[idx] + (self.chunk_ticks - segment_starts[idx]) / segment_lengths[idx]

    # ------------------------------------------------------------------
    # Tick-level queries (used by the segmentation stages)
    # ------------------------------------------------------------------

    def chunk_index(self, tick: int) -> int:
        """Chunk containing a tick, clamped to the valid range."""
        return int(min(max(tick // MIN_RESOLUTION_TICKS, 0), self.num_chunks - 1))

    def measure_number_at_tick(self, tick: int) -> float:
        tick = max(0, tick)
        idx = self.chunk_index(tick)
        advance = tick - int(self.chunk_ticks[idx])
        return float(self.measure_numbers[idx] + advance / self.measure_length_ticks[idx])

    def measure_length_ticks_at(self, tick: int) -> float:
        return float(self.measure_length_ticks[self.chunk_index(tick)])

    def key_at_tick(self, tick: int) -> int:
        return self.key_signatures[int(self.key_index[self.chunk_index(tick)])].key

    def time_signature_at_tick(self, tick: int) -> TimeSignatureEvent:
        return self.time_signatures[int(self.time_index[self.chunk_index(tick)])]

    def beat_ticks_at(self, tick: int) -> int:
        """Beat length in ticks (4/denominator quarters), at least one tick."""
        denominator = self.time_signature_at_tick(tick).denominator
        return max(1, int(round(4 * TICKS_PER_QUARTER / denominator)))

    def measure_start_tick(self, tick: int) -> int:
        """Start tick of the measure containing `tick`."""
        measure_number = self.measure_number_at_tick(tick)
        fraction = max(0.0, measure_number - math.floor(measure_number + QUARTER_TOLERANCE))
        return tick - int(round(fraction * self.measure_length_ticks_at(tick)))

    def measure_end_tick(self, tick: int) -> int:
        """End tick of the measure containing `tick`."""
        return self.measure_start_tick(tick) + int(round(self.measure_length_ticks_at(tick)))

    def is_measure_beginning_tick(self, tick: int) -> bool:
        return self.measure_start_tick(tick) == tick

    def is_beat_start_tick(self, tick: int) -> bool:
        measure_start = self.measure_start_tick(tick)
        denominator = self.time_signature_at_tick(tick).denominator
        beat_number = (tick - measure_start) / (4 * TICKS_PER_QUARTER / denominator)
        return abs(beat_number - round(beat_number)) < BEAT_TOLERANCE

    def _is_exact_chunk(self, tick: int) -> bool:
        idx = self.chunk_index(tick)
        return abs(tick - int(self.chunk_ticks[idx])) * 2 < MIN_RESOLUTION_TICKS

    # ------------------------------------------------------------------
    # Quarter-level queries
    # ------------------------------------------------------------------

    def chunk_at(self, quarters: float) -> MeasureContext:
        """Get a structured view of the chunk active at a position."""
        idx = self.chunk_index(to_ticks(quarters))
        return MeasureContext(
            start_tick=int(self.chunk_ticks[idx]),
            measure_number=float(self.measure_numbers[idx]),
            measure_length=float(self.measure_length_ticks[idx]) / TICKS_PER_QUARTER,
            tempo=self.tempos[int(self.tempo_index[idx])],
            key_signature=self.key_signatures[int(self.key_index[idx])],
            time_signature=self.time_signatures[int(self.time_index[idx])],
            tempo_change=bool(self.tempo_changes[idx]),
            key_change=bool(self.key_changes[idx]),
            time_change=bool(self.time_changes[idx]),
        )

    def measure_number_at_q(self, quarters: float) -> float:
        """
        Get the measure number at a position.

        Returns:
            Float whose integer part is the measure (from 1) and whose
            fraction is the position within it (3.5 = halfway through 3)
        """
        return self.measure_number_at_tick(to_ticks(quarters))

    def measure_length_at_q(self, quarters: float) -> float:
        """Measure length in quarter notes at a position."""
        return self.measure_length_ticks_at(to_ticks(quarters)) / TICKS_PER_QUARTER

    def measure_start_at_q(self, quarters: float) -> float:
        """Start of the measure containing a position, in quarter notes."""
        return to_quarters(self.measure_start_tick(to_ticks(quarters)))

    def beat_length_at_q(self, quarters: float) -> float:
        """Beat length (4/denominator quarters) at a position."""
        return 4 / self.time_signature_at_tick(to_ticks(quarters)).denominator

    def tempo_at_q(self, quarters: float, only_changes: bool = False) -> Optional[float]:
        """
        Get the tempo in quarters per minute at a position.

        Args:
            quarters: Position in quarter notes
            only_changes: Only report a tempo changing exactly at this position

        Returns:
            QPM, or None when only_changes is set and no change happens here
        """
        tick = to_ticks(quarters)
        idx = self.chunk_index(tick)
        if only_changes and not (self.tempo_changes[idx] and self._is_exact_chunk(tick)):
            return None
        return self.tempos[int(self.tempo_index[idx])].qpm

    def key_signature_at_q(self, quarters: float, only_changes: bool = False) -> Optional[int]:
        """
        Get the key tonic (0-11) at a position.

        Returns:
            Key, or None when only_changes is set and no change happens here
        """
        tick = to_ticks(quarters)
        idx = self.chunk_index(tick)
        if only_changes and not (self.key_changes[idx] and self._is_exact_chunk(tick)):
            return None
        return self.key_signatures[int(self.key_index[idx])].key

    def time_signature_at_q(
        self,
        quarters: float,
        only_changes: bool = False
    ) -> Optional[TimeSignatureEvent]:
        """
        Get the time signature at a position.

        Returns:
            TimeSignatureEvent, or None when only_changes is set and no
            change happens here
        """
        tick = to_ticks(quarters)
        idx = self.chunk_index(tick)
        if only_changes and not (self.time_changes[idx] and self._is_exact_chunk(tick)):
            return None
        return self.time_signatures[int(self.time_index[idx])]

    def quarters_to_time(self, quarters: float, start: float) -> float:
        """
        Convert a duration in quarters to seconds with the tempo at `start`.

        Tempo changes inside the converted interval are not integrated.
        """
        qpm = self.tempo_at_q(start)
        return quarters / qpm * 60

    def time_to_quarters(self, time: float, start: float) -> float:
        """
        Convert a duration in seconds to quarters with the tempo at `start`.

        The result is rounded to the tick grid. Tempo changes inside the
        converted interval are not integrated.
        """
        qpm = self.tempo_at_q(start)
        return to_quarters(to_ticks(time * qpm / 60))

    def is_beat_start(self, quarters: float) -> bool:
        """Check whether a position lies on a beat boundary."""
        return self.is_beat_start_tick(to_ticks(quarters))

    def measure_starts(self) -> List[Tuple[int, int]]:
        """
        List every measure beginning within the score.

        Returns:
            List of (measure index from 1, start tick)
        """
        numbers = np.floor(self.measure_numbers + QUARTER_TOLERANCE).astype(np.int64)
        boundaries = np.flatnonzero(np.diff(numbers) > 0) + 1

        starts = [(int(numbers[0]), self.measure_start_tick(0))]
        for idx in boundaries:
            start_tick = self.measure_start_tick(int(self.chunk_ticks[idx]))
            if start_tick < self.end_tick:
                starts.append((int(numbers[idx]), start_tick))
        return starts

    def __len__(self) -> int:
        return self.num_chunks
