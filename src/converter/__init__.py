"""
Converter module for the jianpu engine.

Loads scores (MIDI, JSON) and exports segmented models (JSON, MIDI, MusicXML).
"""

from .midi_loader import MidiLoader, JSONLoader, load_score, key_name_to_major_tonic
from .converter import Converter, JSONConverter, MIDIConverter, MusicXMLConverter

__all__ = [
    'MidiLoader',
    'JSONLoader',
    'load_score',
    'key_name_to_major_tonic',
    'Converter',
    'JSONConverter',
    'MIDIConverter',
    'MusicXMLConverter',
]
