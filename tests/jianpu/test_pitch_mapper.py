"""
Tests for MIDI pitch to degree mapping.
"""

import pytest
from src.jianpu.diagnostics import DiagnosticKind, DiagnosticLog
from src.jianpu.pitch import (
    Accidental,
    ChromaticSpelling,
    JianpuPitch,
    PitchMapper,
    format_degree,
    map_midi_to_jianpu,
    tonic_reference,
)

N = Accidental.NONE
S = Accidental.SHARP
F = Accidental.FLAT


class TestTonicReference:
    """Test the unmarked octave of each tonic."""

    def test_references(self):
        """Test C uses middle C, other tonics the octave below."""
        assert tonic_reference(0) == 60
        assert tonic_reference(7) == 55
        assert tonic_reference(5) == 53
        assert tonic_reference(11) == 59


class TestPitchMapper:
    """Test degree, octave and accidental mapping."""

    def test_key_signature_spelling(self):
        """Test one chromatic octave in C with the default spelling."""
        mapper = PitchMapper()
        mapped = [mapper.map(pitch, 0) for pitch in range(60, 72)]

        assert [p.degree for p in mapped] == [1, 1, 2, 3, 3, 4, 4, 5, 6, 6, 7, 7]
        assert [p.accidental for p in mapped] == [N, S, N, F, N, N, S, N, F, N, F, N]
        assert all(p.octave_offset == 0 for p in mapped)

    def test_sharp_spelling(self):
        """Test one chromatic octave in C spelled with sharps only."""
        mapper = PitchMapper(ChromaticSpelling.SHARPS)
        labels = [mapper.map(pitch, 0).label for pitch in range(60, 72)]

        assert labels == ['1', '#1', '2', '#2', '3', '4', '#4', '5', '#5', '6', '#6', '7']

    def test_octave_offsets(self):
        """Test octave markers around middle C."""
        mapper = PitchMapper()

        assert mapper.map(72, 0) == JianpuPitch(1, 1)
        assert mapper.map(59, 0) == JianpuPitch(7, -1)
        assert mapper.map(36, 0) == JianpuPitch(1, -2)

    def test_g_major(self):
        """Test degrees relative to G."""
        mapper = PitchMapper()

        assert mapper.map(55, 7) == JianpuPitch(1, 0)
        assert mapper.map(67, 7) == JianpuPitch(1, 1)
        assert mapper.map(60, 7) == JianpuPitch(4, 0)
        assert mapper.map(66, 7) == JianpuPitch(7, 0)

    def test_f_major(self):
        """Test B flat in F major is a plain 4 one octave up."""
        assert PitchMapper().map(70, 5) == JianpuPitch(4, 1)

    @pytest.mark.parametrize('spelling', list(ChromaticSpelling))
    def test_octave_invariance(self, spelling):
        """Test shifting by 12 only changes the octave offset."""
        mapper = PitchMapper(spelling)
        for key in range(12):
            for pitch in range(12, 116):
                lower = mapper.map(pitch, key)
                upper = mapper.map(pitch + 12, key)
                assert upper.degree == lower.degree
                assert upper.accidental == lower.accidental
                assert upper.octave_offset == lower.octave_offset + 1

    def test_fallback_on_missing_table_entry(self):
        """Test an inconsistent table falls back to sharp 1 with a diagnostic."""
        diagnostics = DiagnosticLog()
        mapper = PitchMapper(chromatic_table={})

        result = mapper.map(61, 0, diagnostics, quarter=2.0)

        assert result == JianpuPitch(1, 0, S)
        fallbacks = diagnostics.of_kind(DiagnosticKind.PITCH_FALLBACK)
        assert len(fallbacks) == 1
        assert fallbacks[0].quarter == 2.0

    def test_fallback_on_missing_scale_degree(self):
        """Test a chromatic entry pointing at a missing degree falls back."""
        diagnostics = DiagnosticLog()
        mapper = PitchMapper(scale_intervals={0: 1, 7: 5})

        assert mapper.map(62, 0, diagnostics).degree == 1
        assert len(diagnostics) == 1

    def test_map_midi_to_jianpu(self):
        """Test the module-level helper uses the default spelling."""
        assert map_midi_to_jianpu(63, 0) == JianpuPitch(3, 0, F)


class TestDegreeFormatting:
    """Test plain-text degree labels."""

    def test_labels(self):
        """Test accidentals and octave markers in labels."""
        assert format_degree(4, S) == '#4'
        assert JianpuPitch(5, 1).label == "5'"
        assert JianpuPitch(7, -2, F).label == 'b7,,'
        assert JianpuPitch(3, 0).label == '3'
