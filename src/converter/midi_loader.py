"""
Score loaders.

Reads MIDI and JSON files into ScoreInfo structures for the jianpu engine.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import mido

from src.jianpu.diagnostics import Diagnostic
from src.jianpu.score_info import KeyEvent, NoteEvent, ScoreInfo, TempoEvent, TimeSignatureEvent


logger = logging.getLogger(__name__)

# Tonic pitch classes of the note names used by MIDI key_signature messages
TONIC_PITCH_CLASSES: Dict[str, int] = {
    'C': 0, 'C#': 1, 'Db': 1, 'D': 2, 'D#': 3, 'Eb': 3, 'E': 4, 'Fb': 4,
    'E#': 5, 'F': 5, 'F#': 6, 'Gb': 6, 'G': 7, 'G#': 8, 'Ab': 8, 'A': 9,
    'A#': 10, 'Bb': 10, 'B': 11, 'Cb': 11,
}


def key_name_to_major_tonic(name: str) -> int:
    """
    Convert a MIDI key name to a major-key tonic pitch class.

    Minor keys map to their relative major, since only major-key spelling
    is modeled ('Am' -> 0, 'F#m' -> 9).

    Args:
        name: Key name as stored by mido (e.g. 'G', 'Bb', 'C#m')

    Returns:
        Tonic pitch class 0-11

    Raises:
        ValueError: If the name is not a known key
    """
    is_minor = name.endswith('m')
    tonic = name[:-1] if is_minor else name
    if tonic not in TONIC_PITCH_CLASSES:
        raise ValueError(f"Invalid key name: {name}")
    pitch_class = TONIC_PITCH_CLASSES[tonic]
    return (pitch_class + 3) % 12 if is_minor else pitch_class


class MidiLoader:
    """
    Loads a MIDI file into a ScoreInfo.

    All tracks are merged. Positions are converted from MIDI ticks to
    quarter notes with the file's ticks_per_beat, so tempo changes do not
    affect note positions.
    """

    def load(self, midi_path: Union[str, Path]) -> ScoreInfo:
        """
        Load a MIDI file.

        Args:
            midi_path: Path to .mid/.midi file

        Returns:
            ScoreInfo with notes and tempo, key and time signature changes

        Raises:
            FileNotFoundError: If the file does not exist
        """
        midi_path = Path(midi_path)
        if not midi_path.exists():
            raise FileNotFoundError(f"MIDI file not found: {midi_path}")

        midi_file = mido.MidiFile(midi_path)
        ticks_per_beat = midi_file.ticks_per_beat

        notes: List[NoteEvent] = []
        tempos: List[TempoEvent] = []
        keys: List[KeyEvent] = []
        time_signatures: List[TimeSignatureEvent] = []

        # (channel, pitch) -> list of (onset tick, velocity), oldest first
        active_notes: Dict[Tuple[int, int], List[Tuple[int, int]]] = {}
        current_tick = 0

        for msg in mido.merge_tracks(midi_file.tracks):
            current_tick += msg.time
            quarters = current_tick / ticks_per_beat

            if msg.type == 'note_on' and msg.velocity > 0:
                active_notes.setdefault((msg.channel, msg.note), []).append(
                    (current_tick, msg.velocity)
                )

            elif msg.type == 'note_off' or (msg.type == 'note_on' and msg.velocity == 0):
                pending = active_notes.get((msg.channel, msg.note))
                if pending:
                    onset, velocity = pending.pop(0)
                    note = self._make_note(onset, current_tick, msg.note, velocity, ticks_per_beat)
                    if note is not None:
                        notes.append(note)

            elif msg.type == 'set_tempo':
                tempos.append(TempoEvent(start=quarters, qpm=mido.tempo2bpm(msg.tempo)))

            elif msg.type == 'time_signature':
                time_signatures.append(TimeSignatureEvent(
                    start=quarters,
                    numerator=msg.numerator,
                    denominator=msg.denominator
                ))

            elif msg.type == 'key_signature':
                try:
                    keys.append(KeyEvent(start=quarters, key=key_name_to_major_tonic(msg.key)))
                except ValueError as e:
                    logger.warning(f"Ignoring key signature at {quarters}: {e}")

        # Close notes still sounding at the last event
        for (channel, pitch), pending in active_notes.items():
            for onset, velocity in pending:
                note = self._make_note(onset, current_tick, pitch, velocity, ticks_per_beat)
                if note is not None:
                    logger.debug(f"Closing unterminated note {pitch} at tick {current_tick}")
                    notes.append(note)

        notes.sort(key=lambda n: n.start)
        logger.info(
            f"Loaded {len(notes)} notes from {midi_path.name} "
            f"({len(tempos)} tempos, {len(keys)} keys, {len(time_signatures)} time signatures)"
        )
        return ScoreInfo(
            notes=notes,
            tempos=tempos,
            key_signatures=keys,
            time_signatures=time_signatures
        )

    @staticmethod
    def _make_note(
        onset: int,
        offset: int,
        pitch: int,
        velocity: int,
        ticks_per_beat: int
    ) -> Optional[NoteEvent]:
        if offset <= onset:
            return None
        return NoteEvent(
            start=onset / ticks_per_beat,
            length=(offset - onset) / ticks_per_beat,
            pitch=pitch,
            intensity=velocity
        )


class JSONLoader:
    """
    Loads a score from the JSON interchange format.

    Malformed entries are skipped; the resulting diagnostics are kept in
    `diagnostics` after each load.
    """

    def __init__(self):
        self.diagnostics: List[Diagnostic] = []

    def load(self, json_path: Union[str, Path]) -> ScoreInfo:
        """
        Load a JSON score.

        Args:
            json_path: Path to .json file

        Returns:
            ScoreInfo

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file is not a JSON object
        """
        json_path = Path(json_path)
        if not json_path.exists():
            raise FileNotFoundError(f"JSON file not found: {json_path}")

        with open(json_path, 'r', encoding='utf-8') as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON in {json_path}: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(f"Invalid score file {json_path}: expected a JSON object")

        score, self.diagnostics = ScoreInfo.from_dict(data)
        for diagnostic in self.diagnostics:
            logger.warning(diagnostic.message)
        return score


MIDI_SUFFIXES = ('.mid', '.midi')


def load_score(path: Union[str, Path]) -> Tuple[ScoreInfo, List[Diagnostic]]:
    """
    Load a score, choosing the loader from the file suffix.

    Args:
        path: Path to a .mid, .midi or .json file

    Returns:
        Tuple of (ScoreInfo, diagnostics collected while loading)

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the suffix is not supported
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix in MIDI_SUFFIXES:
        return MidiLoader().load(path), []
    if suffix == '.json':
        loader = JSONLoader()
        score = loader.load(path)
        return score, loader.diagnostics

    raise ValueError(f"Unsupported input format: {path.suffix}. Use .mid, .midi or .json")
