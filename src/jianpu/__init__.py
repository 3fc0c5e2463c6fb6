"""
Numbered-notation (jianpu) engine.

Converts timestamped notes plus tempo, key and time signature changes into
renderable notation blocks.
"""

from .score_info import (
    NoteEvent,
    TempoEvent,
    KeyEvent,
    TimeSignatureEvent,
    ScoreInfo,
    measure_length,
)
from .diagnostics import Diagnostic, DiagnosticKind, DiagnosticLog
from .context import ContextIndex, MeasureContext
from .pitch import Accidental, ChromaticSpelling, JianpuPitch, PitchMapper, map_midi_to_jianpu
from .notation import NotationNote, NotationBlock, RenderProps, NoteArena
from .segmenter import EngineConfig, Segmentation, BlockSegmenter
from .model import JianpuModel

__all__ = [
    'NoteEvent',
    'TempoEvent',
    'KeyEvent',
    'TimeSignatureEvent',
    'ScoreInfo',
    'measure_length',
    'Diagnostic',
    'DiagnosticKind',
    'DiagnosticLog',
    'ContextIndex',
    'MeasureContext',
    'Accidental',
    'ChromaticSpelling',
    'JianpuPitch',
    'PitchMapper',
    'map_midi_to_jianpu',
    'NotationNote',
    'NotationBlock',
    'RenderProps',
    'NoteArena',
    'EngineConfig',
    'Segmentation',
    'BlockSegmenter',
    'JianpuModel',
]
