"""
Tests for jianpu model exporters.
"""

import mido
import pytest
from src.converter.converter import CONVERTERS, JSONConverter, MIDIConverter, MusicXMLConverter
from src.converter.midi_loader import MidiLoader
from src.jianpu.model import JianpuModel
from src.jianpu.score_info import (
    KeyEvent,
    NoteEvent,
    ScoreInfo,
    TempoEvent,
    TimeSignatureEvent,
)


@pytest.fixture
def model():
    """Model with a tied note across a barline, a rest and a chord."""
    score = ScoreInfo(
        notes=[
            NoteEvent(start=0.0, length=5.0, pitch=67, intensity=100),
            NoteEvent(start=6.0, length=1.0, pitch=71, intensity=70),
            NoteEvent(start=6.0, length=1.0, pitch=74, intensity=70),
        ],
        tempos=[TempoEvent(0.0, 120.0)],
        key_signatures=[KeyEvent(0.0, 7)],
        time_signatures=[TimeSignatureEvent(0.0, 4, 4)],
    )
    return JianpuModel(score)


class TestJSONConverter:
    """Test JSON export."""

    def test_convert(self, model, tmp_path):
        """Test blocks and notes are written."""
        output_path = tmp_path / "out" / "score.json"

        JSONConverter().convert(model, output_path)
        data = JSONConverter.load(output_path)

        assert data['totalDuration'] == 7.0
        assert len(data['blocks']) == len(model.blocks)
        assert data['keySignatures'][0]['key'] == 7
        assert data['blocks'][1]['measureNumber'] == 2.0

    def test_indent(self, model, tmp_path):
        """Test indent 0 writes no leading spaces."""
        output_path = tmp_path / "score.json"

        JSONConverter(indent=0).convert(model, output_path)

        assert not any(line.startswith(' ') for line in output_path.read_text().splitlines())


class TestMIDIConverter:
    """Test MIDI export."""

    def test_tie_chains_written_once(self, model, tmp_path):
        """Test each tie chain becomes one sounding note."""
        output_path = tmp_path / "score.mid"

        MIDIConverter().convert(model, output_path)
        note_ons = [
            msg for msg in mido.MidiFile(output_path).tracks[0]
            if msg.type == 'note_on' and msg.velocity > 0
        ]

        assert len(note_ons) == 3

    def test_reload(self, model, tmp_path):
        """Test the exported file loads back to the input notes."""
        output_path = tmp_path / "score.mid"

        MIDIConverter().convert(model, output_path)
        score = MidiLoader().load(output_path)

        assert [(n.start, n.length, n.pitch) for n in score.notes] == [
            (0.0, 5.0, 67), (6.0, 1.0, 71), (6.0, 1.0, 74),
        ]
        assert score.notes[0].intensity == 100
        assert score.tempos[0].qpm == pytest.approx(120.0)
        assert score.key_signatures[0].key == 7


class TestMusicXMLConverter:
    """Test MusicXML export."""

    def test_convert(self, model, tmp_path):
        """Test a MusicXML document is written."""
        pytest.importorskip('music21')
        output_path = tmp_path / "score.musicxml"

        MusicXMLConverter().convert(model, output_path)

        assert output_path.exists()
        content = output_path.read_text(encoding='utf-8')
        assert 'score-partwise' in content
        assert '<tie type="start"' in content


class TestConverterRegistry:
    """Test converter lookup by format name."""

    def test_registry(self):
        """Test every output format has a converter."""
        assert set(CONVERTERS) == {'json', 'midi', 'musicxml'}
        assert CONVERTERS['midi'] is MIDIConverter
