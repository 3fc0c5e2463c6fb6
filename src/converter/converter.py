"""
Format converters for jianpu models.

Exports segmented models to different formats (JSON, MIDI, MusicXML).
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Union

import mido

from src.jianpu.constants import KEY_SIGNATURE_SHARPS
from src.jianpu.model import JianpuModel
from src.jianpu.notation import NotationNote


logger = logging.getLogger(__name__)

# Major key names accepted by MIDI key_signature meta messages, by tonic
MAJOR_KEY_NAMES = ['C', 'Db', 'D', 'Eb', 'E', 'F', 'F#', 'G', 'Ab', 'A', 'Bb', 'B']


class Converter(ABC):
    """Abstract base class for format converters."""

    @abstractmethod
    def convert(self, model: JianpuModel, output_path: Union[str, Path]) -> None:
        """
        Convert a jianpu model to target format.

        Args:
            model: JianpuModel to convert
            output_path: Output file path
        """
        pass


class JSONConverter(Converter):
    """Converts a jianpu model to JSON format."""

    def __init__(self, indent: int = 2):
        self.indent = indent

    def convert(self, model: JianpuModel, output_path: Union[str, Path]) -> None:
        """
        Export blocks, notes, measures and diagnostics to a JSON file.

        Args:
            model: JianpuModel to export
            output_path: Output JSON file path
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        data = model.to_dict()

        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=self.indent, ensure_ascii=False)
        logger.info(f"Wrote {len(data['blocks'])} blocks to {output_path}")

    @staticmethod
    def load(file_path: Union[str, Path]) -> dict:
        """
        Load an exported JSON file.

        Args:
            file_path: Path to JSON file

        Returns:
            Dictionary with block data
        """
        with open(file_path, 'r', encoding='utf-8') as f:
            return json.load(f)


class MIDIConverter(Converter):
    """
    Converts a jianpu model back to MIDI.

    Each tie chain is written as one sustained note, so the output sounds
    like the modeled input.
    """

    def __init__(self, ticks_per_beat: int = 480):
        self.ticks_per_beat = ticks_per_beat

    def convert(self, model: JianpuModel, output_path: Union[str, Path]) -> None:
        """
        Export the model to a MIDI file.

        Args:
            model: JianpuModel to export
            output_path: Output MIDI file path
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        midi = mido.MidiFile(ticks_per_beat=self.ticks_per_beat)
        track = mido.MidiTrack()
        midi.tracks.append(track)

        events = self._create_meta_events(model) + self._create_midi_events(model)

        # Sort by time; at equal times meta first, then note_off before note_on
        events.sort(key=lambda x: (x[0], x[1]))

        current_tick = 0
        for tick, _, msg in events:
            msg.time = max(0, tick - current_tick)
            track.append(msg)
            current_tick = tick

        midi.save(output_path)
        logger.info(f"Wrote MIDI to {output_path}")

    def _ticks(self, quarters: float) -> int:
        return int(round(quarters * self.ticks_per_beat))

    def _create_meta_events(self, model: JianpuModel) -> List[tuple]:
        """Create tempo, time and key signature meta events."""
        score = model.score_info
        events = []
        for tempo in score.tempos:
            events.append((
                self._ticks(tempo.start), 0,
                mido.MetaMessage('set_tempo', tempo=mido.bpm2tempo(tempo.qpm), time=0)
            ))
        for ts in score.time_signatures:
            events.append((
                self._ticks(ts.start), 0,
                mido.MetaMessage(
                    'time_signature',
                    numerator=ts.numerator,
                    denominator=ts.denominator,
                    time=0
                )
            ))
        for key in score.key_signatures:
            events.append((
                self._ticks(key.start), 0,
                mido.MetaMessage('key_signature', key=MAJOR_KEY_NAMES[key.key], time=0)
            ))
        return events

    def _create_midi_events(self, model: JianpuModel) -> List[tuple]:
        """Create note on/off events, one pair per tie chain."""
        events = []
        for note in model.notes:
            if note.tied_from is not None:
                continue
            chain = model.tie_chain(note.id)
            end = chain[-1].end
            events.append((
                self._ticks(note.start), 2,
                mido.Message('note_on', note=note.pitch, velocity=note.intensity, time=0)
            ))
            events.append((
                self._ticks(end), 1,
                mido.Message('note_off', note=note.pitch, velocity=0, time=0)
            ))
        return events


class MusicXMLConverter(Converter):
    """
    Converts a jianpu model to MusicXML format.

    Each block becomes a rest, note or chord of the block's length, with
    ties taken from the note arena and the jianpu degree as lyric.
    """

    def convert(self, model: JianpuModel, output_path: Union[str, Path]) -> None:
        """
        Export the model to a MusicXML file.

        Args:
            model: JianpuModel to export
            output_path: Output MusicXML file path
        """
        try:
            from music21 import chord, key, meter, note, stream, tempo
        except ImportError:
            raise ImportError(
                "music21 library required for MusicXML export. "
                "Install with: pip install music21"
            )

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        score = stream.Score()
        part = stream.Part()

        # Structural marks at every change
        for tempo_event in model.score_info.tempos:
            part.insert(tempo_event.start, tempo.MetronomeMark(number=tempo_event.qpm))
        for ts in model.score_info.time_signatures:
            part.insert(ts.start, meter.TimeSignature(f'{ts.numerator}/{ts.denominator}'))
        for key_event in model.score_info.key_signatures:
            part.insert(key_event.start, key.KeySignature(KEY_SIGNATURE_SHARPS[key_event.key]))

        for block in model.blocks:
            notes = model.notes_of(block)
            if not notes:
                element = note.Rest(quarterLength=block.length)
            elif len(notes) == 1:
                element = note.Note(notes[0].pitch, quarterLength=block.length)
                element.volume.velocity = notes[0].intensity
                self._set_tie(element, notes[0])
            else:
                element = chord.Chord(
                    [note.Note(n.pitch) for n in notes],
                    quarterLength=block.length
                )
                for m21_note, jianpu_note in zip(element.notes, notes):
                    self._set_tie(m21_note, jianpu_note)

            if notes:
                element.lyric = notes[0].label
            part.insert(block.start, element)

        score.append(part)
        score.write('musicxml', fp=str(output_path))
        logger.info(f"Wrote MusicXML to {output_path}")

    @staticmethod
    def _set_tie(m21_note, jianpu_note: NotationNote) -> None:
        from music21 import tie

        if jianpu_note.tied_to is not None and jianpu_note.tied_from is None:
            m21_note.tie = tie.Tie('start')
        elif jianpu_note.tied_from is not None and jianpu_note.tied_to is None:
            m21_note.tie = tie.Tie('stop')
        elif jianpu_note.tied_from is not None:
            m21_note.tie = tie.Tie('continue')


CONVERTERS: Dict[str, type] = {
    'json': JSONConverter,
    'midi': MIDIConverter,
    'musicxml': MusicXMLConverter,
}
