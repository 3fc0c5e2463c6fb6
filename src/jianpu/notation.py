"""
Notation notes, blocks and the tie arena.

Notes live in a flat arena and refer to their tie neighbours by integer id,
so splitting a note never leaves dangling object references. Blocks are
immutable and are rebuilt, not mutated, when a stage changes them.
"""

import math
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from .constants import PITCH_CLASS_NAMES, QUARTER_TOLERANCE, to_quarters
from .pitch import Accidental, format_degree


@dataclass(frozen=True)
class NotationNote:
    """
    A note prepared for numbered notation.

    Attributes:
        id: Index of the note in its arena
        start_tick: Onset in ticks
        length_tick: Duration in ticks
        pitch: MIDI note number
        intensity: MIDI velocity
        degree: Scale degree 1-7
        octave_offset: Octave markers (positive above, negative below)
        accidental: Accidental drawn before the degree
        tied_from: Arena id of the tied predecessor
        tied_to: Arena id of the tied successor
        origin: Index of the input note this fragment comes from
    """
    id: int
    start_tick: int
    length_tick: int
    pitch: int
    intensity: int
    degree: int
    octave_offset: int
    accidental: Accidental = Accidental.NONE
    tied_from: Optional[int] = None
    tied_to: Optional[int] = None
    origin: Optional[int] = None

    @property
    def end_tick(self) -> int:
        return self.start_tick + self.length_tick

    @property
    def start(self) -> float:
        return to_quarters(self.start_tick)

    @property
    def length(self) -> float:
        return to_quarters(self.length_tick)

    @property
    def end(self) -> float:
        return to_quarters(self.end_tick)

    @property
    def pitch_name(self) -> str:
        return f"{PITCH_CLASS_NAMES[self.pitch % 12]}{self.pitch // 12 - 1}"

    @property
    def label(self) -> str:
        return format_degree(self.degree, self.accidental, self.octave_offset)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'start': self.start,
            'length': self.length,
            'pitch': self.pitch,
            'intensity': self.intensity,
            'degree': self.degree,
            'octaveOffset': self.octave_offset,
            'accidental': self.accidental.value,
            'tiedFrom': self.tied_from,
            'tiedTo': self.tied_to,
        }


@dataclass(frozen=True)
class RenderProps:
    """
    Symbol properties a renderer needs to draw a block.

    Attributes:
        duration_lines: Underlines below the number (1 = eighth, 2 = sixteenth, ...)
        augmentation_dots: Dots after the number
        augmentation_dash: Dash extending a half, whole or dotted half/whole note
        continuation_dash: Dash drawn instead of repeating a sustained tied number
    """
    duration_lines: int = 0
    augmentation_dots: int = 0
    augmentation_dash: bool = False
    continuation_dash: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'durationLines': self.duration_lines,
            'augmentationDots': self.augmentation_dots,
            'augmentationDash': self.augmentation_dash,
            'continuationDash': self.continuation_dash,
        }


@dataclass(frozen=True)
class NotationBlock:
    """
    Notes starting together (a chord or single note), or a rest.

    Attributes:
        start_tick: Block start in ticks; identifies the block
        length_tick: Block length in ticks
        note_ids: Arena ids of the notes, empty for a rest
        measure_number: Measure number at the block start
        beat_begin: Block starts on a beat boundary
        beat_end: Block ends on a beat or measure boundary
        render: Render properties, set by the last stage
    """
    start_tick: int
    length_tick: int
    note_ids: Tuple[int, ...] = ()
    measure_number: float = 1.0
    beat_begin: bool = False
    beat_end: bool = False
    render: Optional[RenderProps] = None

    @property
    def end_tick(self) -> int:
        return self.start_tick + self.length_tick

    @property
    def start(self) -> float:
        return to_quarters(self.start_tick)

    @property
    def length(self) -> float:
        return to_quarters(self.length_tick)

    @property
    def is_rest(self) -> bool:
        return not self.note_ids

    @property
    def is_measure_beginning(self) -> bool:
        """Check if the block starts exactly at the beginning of a measure."""
        fraction = self.measure_number - math.floor(self.measure_number + QUARTER_TOLERANCE)
        return abs(fraction) <= QUARTER_TOLERANCE

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'start': self.start,
            'length': self.length,
            'measureNumber': self.measure_number,
            'notes': list(self.note_ids),
            'beatBegin': self.beat_begin,
            'beatEnd': self.beat_end,
        }
        if self.render is not None:
            result.update(self.render.to_dict())
        return result


class NoteArena:
    """
    Flat, id-indexed store of notation notes.

    Tie links are kept symmetric: whenever a note points to a successor,
    that successor points back to it.
    """

    def __init__(self, notes: Optional[Sequence[NotationNote]] = None):
        self._notes: List[NotationNote] = list(notes) if notes else []

    def copy(self) -> 'NoteArena':
        """Shallow copy; notes are immutable so they can be shared."""
        return NoteArena(self._notes)

    def add(self, **fields: Any) -> NotationNote:
        """Create a note with the next free id."""
        note = NotationNote(id=len(self._notes), **fields)
        self._notes.append(note)
        return note

    def update(self, note_id: int, **changes: Any) -> NotationNote:
        note = replace(self._notes[note_id], **changes)
        self._notes[note_id] = note
        return note

    def split(self, note_id: int, cut_tick: int) -> Optional[int]:
        """
        Split a note in two at a tick.

        The original note is shortened to end at the cut and a successor
        covering the rest is created, tied from it. A tie the original
        already had on its far side moves to the successor.

        Args:
            note_id: Note to split
            cut_tick: Split point; must fall strictly inside the note

        Returns:
            Id of the new successor, or None when the cut is out of bounds
        """
        note = self._notes[note_id]
        if cut_tick <= note.start_tick or cut_tick >= note.end_tick:
            return None

        successor = self.add(
            start_tick=cut_tick,
            length_tick=note.end_tick - cut_tick,
            pitch=note.pitch,
            intensity=note.intensity,
            degree=note.degree,
            octave_offset=note.octave_offset,
            accidental=Accidental.NONE,
            tied_from=note.id,
            tied_to=note.tied_to,
            origin=note.origin,
        )
        if note.tied_to is not None:
            self.update(note.tied_to, tied_from=successor.id)
        self.update(note_id, length_tick=cut_tick - note.start_tick, tied_to=successor.id)
        return successor.id

    def relink(self, loser_id: int, winner_id: int) -> None:
        """
        Move the tie links of a discarded note onto the note replacing it.

        A link is only taken over when the winner has none in that
        direction; otherwise the neighbour is detached.
        """
        loser = self._notes[loser_id]
        winner = self._notes[winner_id]

        if loser.tied_from is not None:
            if winner.tied_from is None:
                self.update(winner_id, tied_from=loser.tied_from)
                self.update(loser.tied_from, tied_to=winner_id)
            else:
                self.update(loser.tied_from, tied_to=None)
        if loser.tied_to is not None:
            if self._notes[winner_id].tied_to is None:
                self.update(winner_id, tied_to=loser.tied_to)
                self.update(loser.tied_to, tied_from=winner_id)
            else:
                self.update(loser.tied_to, tied_from=None)
        self.update(loser_id, tied_from=None, tied_to=None)

    def tie_chain(self, note_id: int) -> List[NotationNote]:
        """Get every note tied with the given one, in time order."""
        head = self._notes[note_id]
        while head.tied_from is not None:
            head = self._notes[head.tied_from]

        chain = [head]
        while chain[-1].tied_to is not None:
            chain.append(self._notes[chain[-1].tied_to])
        return chain

    def compact(self, order: Sequence[int]) -> Tuple['NoteArena', Dict[int, int]]:
        """
        Build a new arena holding only the given notes, renumbered in order.

        Ties pointing at notes left out are dropped.

        Args:
            order: Ids to keep, in their new order

        Returns:
            Tuple of (new arena, old id -> new id mapping)
        """
        mapping = {old: new for new, old in enumerate(order)}
        notes = []
        for old in order:
            note = self._notes[old]
            notes.append(replace(
                note,
                id=mapping[old],
                tied_from=mapping.get(note.tied_from) if note.tied_from is not None else None,
                tied_to=mapping.get(note.tied_to) if note.tied_to is not None else None,
            ))
        return NoteArena(notes), mapping

    def to_list(self) -> List[NotationNote]:
        return list(self._notes)

    def __getitem__(self, note_id: int) -> NotationNote:
        return self._notes[note_id]

    def __len__(self) -> int:
        return len(self._notes)

    def __iter__(self) -> Iterator[NotationNote]:
        return iter(self._notes)


def merge_note(note_ids: List[int], note_id: int, arena: NoteArena) -> List[int]:
    """
    Add a note to a block's note list.

    When a note of the same pitch is already present the shorter one is
    kept (a re-strike truncates the earlier sustain) and the discarded
    note's ties are moved onto it.

    Args:
        note_ids: Current note ids of the block
        note_id: Note to add
        arena: Arena holding both

    Returns:
        New list of note ids
    """
    incoming = arena[note_id]
    for index, existing_id in enumerate(note_ids):
        existing = arena[existing_id]
        if existing.pitch != incoming.pitch:
            continue
        if incoming.length_tick < existing.length_tick:
            arena.relink(existing_id, note_id)
            merged = list(note_ids)
            merged[index] = note_id
            return merged
        arena.relink(note_id, existing_id)
        return list(note_ids)
    return list(note_ids) + [note_id]


def split_block(
    block: NotationBlock,
    cut_tick: int,
    arena: NoteArena,
    tail_measure_number: float
) -> Optional[Tuple[NotationBlock, NotationBlock]]:
    """
    Split a block in two at a tick.

    Every note crossing the cut is split and its remainder is tied into
    the tail block. Beat flags and render properties are left for the
    calling stage to set.

    Args:
        block: Block to split
        cut_tick: Split point; must fall strictly inside the block
        arena: Note arena, updated in place
        tail_measure_number: Measure number at the cut

    Returns:
        Tuple of (head, tail), or None when the cut is out of bounds
    """
    if cut_tick <= block.start_tick or cut_tick >= block.end_tick:
        return None

    tail_ids: List[int] = []
    for note_id in block.note_ids:
        if arena[note_id].end_tick > cut_tick:
            successor = arena.split(note_id, cut_tick)
            if successor is not None:
                tail_ids = merge_note(tail_ids, successor, arena)

    head = replace(block, length_tick=cut_tick - block.start_tick, render=None)
    tail = NotationBlock(
        start_tick=cut_tick,
        length_tick=block.end_tick - cut_tick,
        note_ids=tuple(tail_ids),
        measure_number=tail_measure_number,
    )
    return head, tail


def merge_blocks(
    existing: NotationBlock,
    incoming: NotationBlock,
    arena: NoteArena
) -> NotationBlock:
    """Merge two blocks sharing a start tick without duplicating notes."""
    note_ids = list(existing.note_ids)
    for note_id in incoming.note_ids:
        note_ids = merge_note(note_ids, note_id, arena)
    return replace(
        existing,
        note_ids=tuple(note_ids),
        length_tick=min(existing.length_tick, incoming.length_tick),
        measure_number=incoming.measure_number,
    )
