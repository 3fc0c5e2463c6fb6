"""
Tests for MIDI and JSON score loading.
"""

import json

import mido
import pytest
from src.converter.midi_loader import (
    JSONLoader,
    MidiLoader,
    key_name_to_major_tonic,
    load_score,
)
from src.jianpu.diagnostics import DiagnosticKind


def write_midi(path, *tracks, ticks_per_beat=480):
    """Write tracks of messages (delta times in ticks) to a MIDI file."""
    midi = mido.MidiFile(ticks_per_beat=ticks_per_beat)
    for messages in tracks:
        track = mido.MidiTrack()
        track.extend(messages)
        midi.tracks.append(track)
    midi.save(path)
    return path


@pytest.fixture
def sample_midi(tmp_path):
    """Create a short MIDI file with tempo, meter and key."""
    return write_midi(tmp_path / "sample.mid", [
        mido.MetaMessage('set_tempo', tempo=mido.bpm2tempo(90), time=0),
        mido.MetaMessage('time_signature', numerator=3, denominator=4, time=0),
        mido.MetaMessage('key_signature', key='G', time=0),
        mido.Message('note_on', note=67, velocity=90, time=0),
        mido.Message('note_off', note=67, velocity=0, time=480),
        mido.Message('note_on', note=71, velocity=70, time=0),
        mido.Message('note_on', note=71, velocity=0, time=240),
    ])


class TestKeyNames:
    """Test key name conversion."""

    def test_major_keys(self):
        """Test major key names map to their tonic."""
        assert key_name_to_major_tonic('C') == 0
        assert key_name_to_major_tonic('G') == 7
        assert key_name_to_major_tonic('Bb') == 10

    def test_minor_keys(self):
        """Test minor keys map to the relative major."""
        assert key_name_to_major_tonic('Am') == 0
        assert key_name_to_major_tonic('F#m') == 9

    def test_invalid_key(self):
        """Test unknown names raise ValueError."""
        with pytest.raises(ValueError):
            key_name_to_major_tonic('H')


class TestMidiLoader:
    """Test MIDI file loading."""

    def test_load_notes(self, sample_midi):
        """Test notes are converted to quarter positions."""
        score = MidiLoader().load(sample_midi)

        assert len(score.notes) == 2
        first, second = score.notes
        assert (first.start, first.length, first.pitch, first.intensity) == (0.0, 1.0, 67, 90)
        assert (second.start, second.length, second.pitch) == (1.0, 0.5, 71)

    def test_load_changes(self, sample_midi):
        """Test tempo, time and key signature events are read."""
        score = MidiLoader().load(sample_midi)

        assert score.tempos[0].qpm == pytest.approx(90.0, abs=0.01)
        assert (score.time_signatures[0].numerator, score.time_signatures[0].denominator) == (3, 4)
        assert score.key_signatures[0].key == 7

    def test_repeated_pitch_closed_in_order(self, tmp_path):
        """Test overlapping same-pitch notes are closed oldest first."""
        path = write_midi(tmp_path / "repeat.mid", [
            mido.Message('note_on', note=60, velocity=80, time=0),
            mido.Message('note_on', note=60, velocity=80, time=240),
            mido.Message('note_off', note=60, velocity=0, time=240),
            mido.Message('note_off', note=60, velocity=0, time=240),
        ])
        score = MidiLoader().load(path)

        assert [(n.start, n.length) for n in score.notes] == [(0.0, 1.0), (0.5, 1.0)]

    def test_unterminated_note_closed(self, tmp_path):
        """Test notes without note_off end at the last event."""
        path = write_midi(tmp_path / "open.mid", [
            mido.Message('note_on', note=60, velocity=80, time=0),
            mido.Message('note_on', note=64, velocity=80, time=0),
            mido.Message('note_off', note=64, velocity=0, time=960),
        ])
        score = MidiLoader().load(path)
        lengths = {note.pitch: note.length for note in score.notes}

        assert lengths == {60: 2.0, 64: 2.0}

    def test_tracks_merged(self, tmp_path):
        """Test notes from every track are loaded."""
        path = write_midi(
            tmp_path / "tracks.mid",
            [
                mido.Message('note_on', note=60, velocity=80, time=0),
                mido.Message('note_off', note=60, velocity=0, time=480),
            ],
            [
                mido.Message('note_on', note=64, velocity=80, time=480),
                mido.Message('note_off', note=64, velocity=0, time=480),
            ],
        )
        score = MidiLoader().load(path)

        assert [(n.pitch, n.start) for n in score.notes] == [(60, 0.0), (64, 1.0)]

    def test_missing_file(self, tmp_path):
        """Test missing files raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            MidiLoader().load(tmp_path / "missing.mid")


class TestJSONLoader:
    """Test JSON score loading."""

    def test_load(self, tmp_path):
        """Test loading a JSON score."""
        path = tmp_path / "score.json"
        path.write_text(json.dumps({
            'notes': [{'start': 0, 'length': 2, 'pitch': 60}],
            'tempos': [{'start': 0, 'qpm': 100}],
        }))
        loader = JSONLoader()

        score = loader.load(path)

        assert score.notes[0].length == 2.0
        assert score.tempos[0].qpm == 100.0
        assert loader.diagnostics == []

    def test_malformed_entries_reported(self, tmp_path):
        """Test skipped entries are kept as diagnostics."""
        path = tmp_path / "score.json"
        path.write_text(json.dumps({'notes': [{'start': 0, 'length': 1}]}))
        loader = JSONLoader()

        score = loader.load(path)

        assert score.notes == []
        assert loader.diagnostics[0].kind == DiagnosticKind.MALFORMED_INPUT

    def test_invalid_json(self, tmp_path):
        """Test invalid JSON raises ValueError."""
        path = tmp_path / "broken.json"
        path.write_text("{notes: ")

        with pytest.raises(ValueError):
            JSONLoader().load(path)

    def test_non_object(self, tmp_path):
        """Test a top-level list raises ValueError."""
        path = tmp_path / "list.json"
        path.write_text("[]")

        with pytest.raises(ValueError):
            JSONLoader().load(path)


class TestLoadScore:
    """Test loader dispatch by suffix."""

    def test_midi(self, sample_midi):
        """Test MIDI files load without diagnostics."""
        score, diagnostics = load_score(sample_midi)

        assert len(score.notes) == 2
        assert diagnostics == []

    def test_json(self, tmp_path):
        """Test JSON files return loader diagnostics."""
        path = tmp_path / "score.json"
        path.write_text(json.dumps({'notes': [{'start': 0}]}))

        _, diagnostics = load_score(path)

        assert len(diagnostics) == 1

    def test_unsupported_suffix(self, tmp_path):
        """Test unsupported suffixes raise ValueError."""
        with pytest.raises(ValueError):
            load_score(tmp_path / "score.txt")
