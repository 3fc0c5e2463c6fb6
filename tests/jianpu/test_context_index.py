"""
Tests for the measure/context index.
"""

import pytest
from src.jianpu.constants import to_ticks
from src.jianpu.context import ContextIndex
from src.jianpu.score_info import KeyEvent, ScoreInfo, TempoEvent, TimeSignatureEvent


def build_context(end: float, **changes) -> ContextIndex:
    """Build a context index for an empty score of the given length."""
    score = ScoreInfo(**changes).normalized()
    return ContextIndex(score, to_ticks(end))


class TestMeasureNumbers:
    """Test float measure numbering."""

    def test_common_time(self):
        """Test measure numbers in 4/4."""
        context = build_context(8.0)

        assert context.measure_number_at_q(0) == 1.0
        assert context.measure_number_at_q(2) == 1.5
        assert context.measure_number_at_q(4) == 2.0
        assert context.measure_number_at_q(7) == 2.75

    def test_three_four(self):
        """Test measure numbers in 3/4."""
        context = build_context(6.0, time_signatures=[TimeSignatureEvent(0.0, 3, 4)])

        assert context.measure_number_at_q(3) == 2.0
        assert context.measure_number_at_q(4.5) == 2.5

    def test_time_signature_change(self):
        """Test numbering continues across a time signature change."""
        context = build_context(10.0, time_signatures=[
            TimeSignatureEvent(0.0, 4, 4),
            TimeSignatureEvent(4.0, 3, 4),
        ])

        assert context.measure_number_at_q(4) == 2.0
        assert context.measure_number_at_q(7) == 3.0
        assert context.measure_number_at_q(8.5) == 3.5
        assert context.measure_length_at_q(1) == 4.0
        assert context.measure_length_at_q(5) == 3.0

    def test_measure_start(self):
        """Test start of the measure containing a position."""
        context = build_context(8.0)

        assert context.measure_start_at_q(5.5) == 4.0
        assert context.measure_start_at_q(4.0) == 4.0

    def test_measure_starts(self):
        """Test listing measure beginnings inside the score."""
        context = build_context(8.0)

        assert context.measure_starts() == [(1, 0), (2, 960)]

    def test_clamping(self):
        """Test out-of-range positions clamp instead of raising."""
        context = build_context(4.0)

        assert context.measure_number_at_q(-1) == 1.0
        assert context.tempo_at_q(100) == 60.0
        assert context.time_signature_at_q(-3).numerator == 4

    def test_empty_score(self):
        """Test an empty score still has one chunk."""
        context = ContextIndex(ScoreInfo().normalized(), 0)

        assert len(context) == 1
        assert context.measure_number_at_q(0) == 1.0

    def test_chunk_count(self):
        """Test one chunk per 64th note plus the end chunk."""
        assert len(build_context(4.0)) == 65


class TestChangeQueries:
    """Test tempo, key and time signature lookups."""

    def test_tempo_lookup(self):
        """Test active tempo and exact changes."""
        context = build_context(4.0, tempos=[TempoEvent(0.0, 60.0), TempoEvent(2.0, 120.0)])

        assert context.tempo_at_q(1) == 60.0
        assert context.tempo_at_q(2) == 120.0
        assert context.tempo_at_q(3) == 120.0
        assert context.tempo_at_q(0, only_changes=True) == 60.0
        assert context.tempo_at_q(2, only_changes=True) == 120.0
        assert context.tempo_at_q(3, only_changes=True) is None

    def test_key_lookup(self):
        """Test active key and exact changes."""
        context = build_context(4.0, key_signatures=[KeyEvent(0.0, 0), KeyEvent(1.0, 7)])

        assert context.key_signature_at_q(0.5) == 0
        assert context.key_signature_at_q(1.0) == 7
        assert context.key_signature_at_q(1.0, only_changes=True) == 7
        assert context.key_signature_at_q(1.5, only_changes=True) is None

    def test_time_signature_lookup(self):
        """Test time signature changes."""
        context = build_context(8.0, time_signatures=[
            TimeSignatureEvent(0.0, 4, 4),
            TimeSignatureEvent(4.0, 6, 8),
        ])

        assert context.time_signature_at_q(5).denominator == 8
        assert context.time_signature_at_q(4, only_changes=True).numerator == 6
        assert context.time_signature_at_q(5, only_changes=True) is None

    def test_last_event_in_chunk_wins(self):
        """Test events snapping to the same chunk resolve to the last one."""
        context = build_context(4.0, tempos=[TempoEvent(0.0, 60.0), TempoEvent(0.01, 90.0)])

        assert context.tempo_at_q(0) == 90.0

    def test_change_past_end_ignored(self):
        """Test changes after the score end never become active."""
        context = build_context(4.0, tempos=[TempoEvent(0.0, 60.0), TempoEvent(100.0, 200.0)])

        assert context.tempo_at_q(3.9) == 60.0

    def test_chunk_view(self):
        """Test the structured chunk view."""
        context = build_context(8.0, tempos=[TempoEvent(0.0, 60.0), TempoEvent(2.0, 120.0)])
        chunk = context.chunk_at(2.0)

        assert chunk.start == 2.0
        assert chunk.tempo.qpm == 120.0
        assert chunk.tempo_change
        assert not chunk.time_change
        assert chunk.measure_number == 1.5
        assert chunk.to_dict()['qpm'] == 120.0


class TestTimeConversion:
    """Test quarter/second conversion."""

    def test_quarters_to_time(self):
        """Test conversion uses the tempo at the start position."""
        context = build_context(8.0, tempos=[TempoEvent(0.0, 60.0), TempoEvent(4.0, 120.0)])

        assert context.quarters_to_time(2, 0) == pytest.approx(2.0)
        assert context.quarters_to_time(2, 4) == pytest.approx(1.0)

    def test_time_to_quarters(self):
        """Test conversion back to quarters is snapped to ticks."""
        context = build_context(8.0, tempos=[TempoEvent(0.0, 60.0), TempoEvent(4.0, 120.0)])

        assert context.time_to_quarters(1.0, 4) == 2.0
        assert context.time_to_quarters(0.3333, 0) == 80 / 240


class TestBeats:
    """Test beat boundary checks."""

    def test_common_time_beats(self):
        """Test quarter beats in 4/4."""
        context = build_context(4.0)

        assert context.is_beat_start(1.0)
        assert not context.is_beat_start(1.5)
        assert context.beat_length_at_q(0) == 1.0

    def test_compound_time_beats(self):
        """Test eighth beats in 6/8."""
        context = build_context(6.0, time_signatures=[TimeSignatureEvent(0.0, 6, 8)])

        assert context.is_beat_start(1.5)
        assert not context.is_beat_start(1.25)
        assert context.beat_length_at_q(0) == 0.5
