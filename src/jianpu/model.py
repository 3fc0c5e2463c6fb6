"""
Numbered-notation score model.

Facade over the context index and the segmentation engine. A model is
rebuilt from scratch on every update and exposes the resulting blocks as an
immutable snapshot together with the structural queries a renderer needs.
"""

import bisect
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .constants import to_quarters, to_ticks
from .context import ContextIndex
from .diagnostics import Diagnostic, DiagnosticLog
from .notation import NotationBlock, NotationNote, NoteArena
from .score_info import ScoreInfo, TimeSignatureEvent
from .segmenter import BlockSegmenter, EngineConfig


logger = logging.getLogger(__name__)


class JianpuModel:
    """
    Models a score into numbered-notation blocks indexed by start time.

    Example:
        >>> model = JianpuModel(score)
        >>> for block in model.blocks:
        ...     print(block.start, block.length, block.render)
    """

    def __init__(
        self,
        score_info: ScoreInfo,
        default_key: Optional[int] = None,
        config: Optional[EngineConfig] = None,
        diagnostics: Optional[Iterable[Diagnostic]] = None
    ):
        """
        Build the model.

        Args:
            score_info: Score to model
            default_key: Key used when the score has none at time 0
            config: Engine configuration (defaults used if None)
            diagnostics: Diagnostics already collected while loading the score
        """
        self.config = config or EngineConfig()
        self.segmenter = BlockSegmenter(self.config)
        self.update(score_info, default_key, diagnostics)

    def update(
        self,
        score_info: ScoreInfo,
        default_key: Optional[int] = None,
        diagnostics: Optional[Iterable[Diagnostic]] = None
    ) -> None:
        """
        Rebuild the whole model from a (possibly changed) score.

        Args:
            score_info: Score to model; left untouched
            default_key: Key used when the score has none at time 0
            diagnostics: Diagnostics already collected while loading the score
        """
        if default_key is None:
            default_key = self.config.default_key

        self.score_info = score_info.normalized(default_key)
        self.end_tick = max(
            (to_ticks(n.start) + max(1, to_ticks(n.length)) for n in self.score_info.notes),
            default=0
        )

        self.diagnostics = DiagnosticLog()
        if diagnostics:
            self.diagnostics.extend(list(diagnostics))

        self.context = ContextIndex(self.score_info, self.end_tick)
        result = self.segmenter.segment(self.score_info, self.context, self.diagnostics)

        self.blocks: Tuple[NotationBlock, ...] = result.blocks
        self.notes: NoteArena = result.notes
        self.block_map: Dict[int, NotationBlock] = result.block_map
        self._block_starts = [block.start_tick for block in self.blocks]

        logger.info(
            f"Built {len(self.blocks)} blocks from {self.score_info.note_count} notes "
            f"({self.total_duration()} quarters, {len(self.diagnostics)} diagnostics)"
        )

    # Context queries

    def measure_number_at_q(self, quarters: float) -> float:
        return self.context.measure_number_at_q(quarters)

    def measure_length_at_q(self, quarters: float) -> float:
        return self.context.measure_length_at_q(quarters)

    def tempo_at_q(self, quarters: float, only_changes: bool = False) -> Optional[float]:
        return self.context.tempo_at_q(quarters, only_changes)

    def key_signature_at_q(self, quarters: float, only_changes: bool = False) -> Optional[int]:
        return self.context.key_signature_at_q(quarters, only_changes)

    def time_signature_at_q(
        self,
        quarters: float,
        only_changes: bool = False
    ) -> Optional[TimeSignatureEvent]:
        return self.context.time_signature_at_q(quarters, only_changes)

    def quarters_to_time(self, quarters: float, start: float) -> float:
        return self.context.quarters_to_time(quarters, start)

    def time_to_quarters(self, time: float, start: float) -> float:
        return self.context.time_to_quarters(time, start)

    def is_beat_start(self, quarters: float) -> bool:
        return self.context.is_beat_start(quarters)

    # Derived queries

    def is_last_measure_at_q(self, quarters: float) -> bool:
        """Check whether a position has reached the score end."""
        return to_ticks(quarters) >= self.end_tick

    def total_duration(self) -> float:
        """Score length in quarter notes."""
        return to_quarters(self.end_tick)

    def block_at_q(self, quarters: float) -> Optional[NotationBlock]:
        """
        Get the block covering a position.

        Returns:
            The block, or None outside [0, total duration)
        """
        tick = to_ticks(quarters)
        index = bisect.bisect_right(self._block_starts, tick) - 1
        if index < 0:
            return None
        block = self.blocks[index]
        return block if tick < block.end_tick else None

    def notes_of(self, block: NotationBlock) -> List[NotationNote]:
        return [self.notes[note_id] for note_id in block.note_ids]

    def tie_chain(self, note_id: int) -> List[NotationNote]:
        """Get every note tied with the given one, in time order."""
        return self.notes.tie_chain(note_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the model to a JSON-serializable dictionary."""
        measures = []
        for number, start_tick in self.context.measure_starts():
            time_signature = self.context.time_signature_at_tick(start_tick)
            measures.append({
                'number': number,
                'start': to_quarters(start_tick),
                'length': self.context.measure_length_at_q(to_quarters(start_tick)),
                'timeSignature': [time_signature.numerator, time_signature.denominator],
            })

        return {
            'totalDuration': self.total_duration(),
            'tempos': [tempo.to_dict() for tempo in self.score_info.tempos],
            'keySignatures': [key.to_dict() for key in self.score_info.key_signatures],
            'timeSignatures': [ts.to_dict() for ts in self.score_info.time_signatures],
            'measures': measures,
            'blocks': [block.to_dict() for block in self.blocks],
            'notes': [note.to_dict() for note in self.notes],
            'diagnostics': [d.to_dict() for d in self.diagnostics],
        }
