"""
Block segmentation engine.

Turns a normalized score into the final sequence of notation blocks through
four pure stages:

    group_notes -> split_to_beats -> split_to_symbols -> compute_render_properties

Each stage takes a Segmentation and returns a new one; the input is never
modified.
"""

import logging
import math
from collections import deque
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

from .constants import (
    DOTTED_SYMBOLS,
    MIN_RESOLUTION_TICKS,
    PLAIN_LENGTHS,
    QUARTER,
    QUARTER_TOLERANCE,
    STANDARD_LENGTHS,
    SYMBOL_CLASSES,
    TICKS_PER_QUARTER,
    to_quarters,
    to_ticks,
)
from .context import ContextIndex
from .diagnostics import DiagnosticKind, DiagnosticLog
from .notation import (
    NotationBlock,
    NoteArena,
    RenderProps,
    merge_blocks,
    merge_note,
    split_block,
)
from .pitch import ChromaticSpelling, PitchMapper
from .score_info import ScoreInfo


logger = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    """Configuration for block segmentation."""
    allow_dotted_rests: bool = True  # Rests may use dotted lengths
    default_key: Optional[int] = None  # Key used when the score has none at 0
    spelling: ChromaticSpelling = ChromaticSpelling.KEY_SIGNATURE

    def __post_init__(self):
        """Validate configuration."""
        if isinstance(self.spelling, str):
            self.spelling = ChromaticSpelling(self.spelling)
        if self.default_key is not None and not 0 <= self.default_key <= 11:
            raise ValueError(f"Invalid default_key: {self.default_key}. Must be 0-11.")


@dataclass(frozen=True)
class Segmentation:
    """
    Intermediate or final result of the segmentation stages.

    Attributes:
        blocks: Blocks in start order
        notes: Arena holding every note the blocks refer to
    """
    blocks: Tuple[NotationBlock, ...]
    notes: NoteArena

    @property
    def block_map(self) -> Dict[int, NotationBlock]:
        return {block.start_tick: block for block in self.blocks}


def group_notes(
    score: ScoreInfo,
    context: ContextIndex,
    mapper: PitchMapper,
    diagnostics: DiagnosticLog
) -> Segmentation:
    """
    Group notes starting together into blocks and fill gaps with rests.

    A block ends at the earliest of its shortest note's end and the next
    onset. Notes sounding past the block end are split there and carried,
    tied, into the following block, so blocks never overlap.

    Args:
        score: Normalized score
        context: Context index of the score
        mapper: Pitch mapper
        diagnostics: Log receiving pitch fallbacks

    Returns:
        Segmentation partitioning [0, score end)
    """
    arena = NoteArena()
    onsets: Dict[int, List[int]] = {}

    for index, event in enumerate(score.notes):
        start_tick = to_ticks(event.start)
        key = context.key_at_tick(start_tick)
        spelled = mapper.map(event.pitch, key, diagnostics, event.start)
        note = arena.add(
            start_tick=start_tick,
            length_tick=max(1, to_ticks(event.length)),
            pitch=event.pitch,
            intensity=event.intensity,
            degree=spelled.degree,
            octave_offset=spelled.octave_offset,
            accidental=spelled.accidental,
            origin=index,
        )
        onsets.setdefault(start_tick, []).append(note.id)

    starts = sorted(onsets)
    blocks: List[NotationBlock] = []
    cursor = 0
    next_onset = 0
    carried: List[int] = []

    while next_onset < len(starts) or carried:
        if not carried:
            onset = starts[next_onset]
            if onset > cursor:
                blocks.append(_rest(cursor, onset, context))
            cursor = onset

        members = carried
        carried = []
        if next_onset < len(starts) and starts[next_onset] == cursor:
            members = members + onsets[cursor]
            next_onset += 1

        note_ids: List[int] = []
        for note_id in members:
            note_ids = merge_note(note_ids, note_id, arena)

        end = min(arena[note_id].end_tick for note_id in note_ids)
        if next_onset < len(starts):
            end = min(end, starts[next_onset])

        for note_id in note_ids:
            successor = arena.split(note_id, end)
            if successor is not None:
                carried.append(successor)

        blocks.append(NotationBlock(
            start_tick=cursor,
            length_tick=end - cursor,
            note_ids=tuple(note_ids),
            measure_number=context.measure_number_at_tick(cursor),
        ))
        cursor = end

    if context.end_tick > cursor:
        blocks.append(_rest(cursor, context.end_tick, context))

    logger.debug(f"Grouped {len(score.notes)} notes into {len(blocks)} blocks")
    return Segmentation(blocks=tuple(blocks), notes=arena)


def _rest(start_tick: int, end_tick: int, context: ContextIndex) -> NotationBlock:
    return NotationBlock(
        start_tick=start_tick,
        length_tick=end_tick - start_tick,
        measure_number=context.measure_number_at_tick(start_tick),
    )


def _ends_on_beat(block: NotationBlock, context: ContextIndex) -> bool:
    measure_start = context.measure_start_tick(block.start_tick)
    measure_end = context.measure_end_tick(block.start_tick)
    beat = context.beat_ticks_at(block.start_tick)
    return (block.end_tick - measure_start) % beat == 0 or block.end_tick == measure_end


def split_to_beats(segmentation: Segmentation, context: ContextIndex) -> Segmentation:
    """
    Split blocks at beat and measure boundaries.

    A block starting off the beat is cut at the next beat boundary, and any
    block is cut where its measure ends; the earliest cut inside the block
    wins. Remainders go back to the front of the queue so they are resolved
    before later blocks.

    Args:
        segmentation: Grouped blocks
        context: Context index of the score

    Returns:
        New segmentation with beat flags set
    """
    arena = segmentation.notes.copy()
    queue = deque(segmentation.blocks)
    blocks: List[NotationBlock] = []

    while queue:
        block = queue.popleft()
        start = block.start_tick
        measure_start = context.measure_start_tick(start)
        measure_end = context.measure_end_tick(start)
        beat_begin = context.is_beat_start_tick(start)

        cuts = []
        if not beat_begin:
            beat = context.beat_ticks_at(start)
            next_beat = measure_start + ((start - measure_start) // beat + 1) * beat
            if start < next_beat < block.end_tick:
                cuts.append(next_beat)
        if start < measure_end < block.end_tick:
            cuts.append(measure_end)

        if not cuts:
            blocks.append(replace(
                block,
                beat_begin=beat_begin,
                beat_end=_ends_on_beat(block, context),
            ))
            continue

        cut = min(cuts)
        head, tail = split_block(block, cut, arena, context.measure_number_at_tick(cut))
        blocks.append(replace(head, beat_begin=beat_begin, beat_end=True))
        queue.appendleft(tail)

    return Segmentation(blocks=tuple(blocks), notes=arena)


def best_symbol_length(length_tick: int, allow_dotted: bool) -> Optional[int]:
    """
    Find the longest standard symbol length fitting in a block.

    Args:
        length_tick: Block length in ticks
        allow_dotted: Whether dotted lengths may be used

    Returns:
        Length in ticks, or None when the block is shorter than a 64th note
    """
    lengths = STANDARD_LENGTHS if allow_dotted else PLAIN_LENGTHS
    for length in lengths:
        if length <= length_tick:
            return length
    return None


def split_to_symbols(
    segmentation: Segmentation,
    context: ContextIndex,
    config: EngineConfig
) -> Segmentation:
    """
    Split blocks into standard symbol lengths, tying notes across cuts.

    Fragments are collected by start tick; a fragment landing on a start
    already present is merged into that block instead of duplicating it.

    Args:
        segmentation: Beat-split blocks
        context: Context index of the score
        config: Engine configuration

    Returns:
        New segmentation whose blocks each have one standard length
    """
    arena = segmentation.notes.copy()
    collected: Dict[int, NotationBlock] = {}

    for block in segmentation.blocks:
        allow_dotted = config.allow_dotted_rests or not block.is_rest
        remaining = block
        while True:
            fit = best_symbol_length(remaining.length_tick, allow_dotted)
            parts = None
            if fit is not None and fit < remaining.length_tick:
                cut = remaining.start_tick + fit
                parts = split_block(remaining, cut, arena, context.measure_number_at_tick(cut))

            if parts is None:
                _collect(collected, remaining, arena)
                break

            head, tail = parts
            on_beat = context.is_beat_start_tick(tail.start_tick)
            _collect(collected, replace(head, beat_end=on_beat), arena)
            remaining = replace(tail, beat_begin=on_beat, beat_end=remaining.beat_end)

    blocks = tuple(collected[start] for start in sorted(collected))
    return Segmentation(blocks=blocks, notes=arena)


def _collect(collected: Dict[int, NotationBlock], block: NotationBlock, arena: NoteArena) -> None:
    existing = collected.get(block.start_tick)
    if existing is None:
        collected[block.start_tick] = block
    else:
        collected[block.start_tick] = merge_blocks(existing, block, arena)


def symbol_properties(
    block: NotationBlock,
    allow_dotted: bool,
    diagnostics: Optional[DiagnosticLog] = None
) -> RenderProps:
    """
    Classify a block length into duration lines, dots and dash.

    Lengths below a 64th note are drawn as one, with a recorded
    diagnostic. The augmentation dash only applies to notes.
    """
    length = block.length_tick
    dotted = DOTTED_SYMBOLS.get(length) if allow_dotted else None

    if dotted is not None:
        lines, dash = dotted
        dots = 1
    else:
        dots = 0
        for minimum, lines, dash in SYMBOL_CLASSES:
            if length >= minimum:
                break
        else:
            lines, dash = 4, False
            if diagnostics is not None:
                diagnostics.record(
                    DiagnosticKind.DURATION_UNDERFLOW,
                    f"Block length {to_quarters(length)} is shorter than "
                    f"{to_quarters(MIN_RESOLUTION_TICKS)}; drawn as a 64th",
                    block.start
                )

    return RenderProps(
        duration_lines=lines,
        augmentation_dots=dots,
        augmentation_dash=dash and not block.is_rest,
    )


def has_continuation_dash(block: NotationBlock, arena: NoteArena, context: ContextIndex) -> bool:
    """
    Decide whether a sustained tied note is drawn as a trailing dash.

    Applies to a single-note block not opening a measure whose note is tied
    from a same-pitch predecessor exactly one beat unit long (at least a
    quarter). The note must itself last at least a quarter and, if it ties
    forward, its successor must stay in the same measure and also last at
    least a quarter.
    """
    if len(block.note_ids) != 1 or block.is_measure_beginning:
        return False

    note = arena[block.note_ids[0]]
    if note.tied_from is None:
        return False

    previous = arena[note.tied_from]
    denominator = context.time_signature_at_tick(block.start_tick).denominator
    beat_unit = max(int(round(4 * TICKS_PER_QUARTER / denominator)), QUARTER)
    if previous.length_tick != beat_unit or previous.pitch != note.pitch:
        return False
    if note.length_tick < QUARTER:
        return False

    if note.tied_to is not None:
        successor = arena[note.tied_to]
        current_measure = math.floor(context.measure_number_at_tick(block.start_tick) + QUARTER_TOLERANCE)
        next_measure = math.floor(context.measure_number_at_tick(note.end_tick) + QUARTER_TOLERANCE)
        if current_measure != next_measure or successor.length_tick < QUARTER:
            return False
    return True


def compute_render_properties(
    segmentation: Segmentation,
    context: ContextIndex,
    config: EngineConfig,
    diagnostics: DiagnosticLog
) -> Segmentation:
    """
    Attach render properties to every block and compact the note arena.

    Args:
        segmentation: Symbol-split blocks
        context: Context index of the score
        config: Engine configuration
        diagnostics: Log receiving duration underflows

    Returns:
        Final segmentation; note ids are renumbered in block order
    """
    arena = segmentation.notes
    order = [note_id for block in segmentation.blocks for note_id in block.note_ids]
    compacted, mapping = arena.compact(order)

    blocks = []
    for block in segmentation.blocks:
        allow_dotted = config.allow_dotted_rests or not block.is_rest
        props = symbol_properties(block, allow_dotted, diagnostics)
        props = replace(props, continuation_dash=has_continuation_dash(block, arena, context))
        blocks.append(replace(
            block,
            note_ids=tuple(mapping[note_id] for note_id in block.note_ids),
            render=props,
        ))

    return Segmentation(blocks=tuple(blocks), notes=compacted)


class BlockSegmenter:
    """
    Runs the segmentation stages over a score.

    Example:
        >>> segmenter = BlockSegmenter(EngineConfig())
        >>> result = segmenter.segment(score.normalized(), context, diagnostics)
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        """
        Initialize segmenter.

        Args:
            config: Engine configuration (defaults used if None)
        """
        self.config = config or EngineConfig()
        self.mapper = PitchMapper(self.config.spelling)

    def segment(
        self,
        score: ScoreInfo,
        context: ContextIndex,
        diagnostics: DiagnosticLog
    ) -> Segmentation:
        """
        Build the final blocks of a normalized score.

        Args:
            score: Normalized score
            context: Context index built from the same score
            diagnostics: Log receiving local recoveries

        Returns:
            Final segmentation with render properties
        """
        grouped = group_notes(score, context, self.mapper, diagnostics)
        beats = split_to_beats(grouped, context)
        symbols = split_to_symbols(beats, context, self.config)
        result = compute_render_properties(symbols, context, self.config, diagnostics)

        logger.debug(
            f"Segmented into {len(result.blocks)} blocks "
            f"({len(grouped.blocks)} grouped, {len(beats.blocks)} after beat split)"
        )
        return result
