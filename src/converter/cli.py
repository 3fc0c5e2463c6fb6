"""
CLI tool for numbered-notation segmentation.

Usage:
    # Segment a MIDI file and export blocks as JSON
    python -m src.converter.cli segment song.mid --output song.json

    # Export MusicXML in G major without dotted rests
    python -m src.converter.cli segment song.mid \
        --output song.musicxml \
        --format musicxml \
        --key 7 \
        --no-dotted-rests

    # Print the block summary of a JSON score
    python -m src.converter.cli info score.json
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from src.jianpu.constants import PITCH_CLASS_NAMES
from src.jianpu.model import JianpuModel
from src.pipeline.config_parser import (
    OUTPUT_FORMATS,
    AppConfig,
    add_config_arguments,
    args_to_config,
    setup_logging,
)
from .converter import CONVERTERS, JSONConverter
from .midi_loader import load_score


logger = logging.getLogger(__name__)

# Errors reported to the user with exit code 1
INPUT_ERRORS = (FileNotFoundError, ValueError, ImportError, OSError, EOFError)


def build_model(input_path: Path, config: AppConfig) -> JianpuModel:
    """Load a score file and segment it."""
    score, diagnostics = load_score(input_path)
    return JianpuModel(score, config=config.engine, diagnostics=diagnostics)


def format_block(model: JianpuModel, block) -> str:
    """Render one block as a summary line."""
    if block.is_rest:
        content = 'rest'
    else:
        labels = []
        for note in model.notes_of(block):
            tie = '~' if note.tied_to is not None else ''
            labels.append(f"{note.label}{tie}")
        content = ' '.join(labels)

    render = block.render
    marks = []
    if render.duration_lines:
        marks.append(f"lines={render.duration_lines}")
    if render.augmentation_dots:
        marks.append(f"dots={render.augmentation_dots}")
    if render.augmentation_dash:
        marks.append("dash")
    if render.continuation_dash:
        marks.append("cont")

    return (
        f"  m{block.measure_number:7.3f}  t={block.start:8.4f}  "
        f"len={block.length:7.4f}  {content:<20} {' '.join(marks)}"
    )


def segment(args):
    """Segment a score and export it."""
    config = args_to_config(args)
    setup_logging(config.logging)

    print(f"Loading score from {args.input}...")
    model = build_model(Path(args.input), config)
    print(f"Built {len(model.blocks)} blocks, duration: {model.total_duration():.3f} quarters")

    output_format = config.output.format
    if output_format == 'json':
        converter = JSONConverter(indent=config.output.indent)
    else:
        converter = CONVERTERS[output_format]()

    print(f"Exporting {output_format} to {args.output}...")
    converter.convert(model, Path(args.output))

    if len(model.diagnostics):
        print(f"{len(model.diagnostics)} diagnostics recorded")
    print("Done!")


def info(args):
    """Print the block summary of a score."""
    config = args_to_config(args)
    setup_logging(config.logging)

    model = build_model(Path(args.input), config)

    key = model.key_signature_at_q(0)
    time_signature = model.time_signature_at_q(0)
    print(f"Score: {args.input}")
    print(f"  Duration: {model.total_duration():.3f} quarters")
    print(f"  Start: 1={PITCH_CLASS_NAMES[key]}  {time_signature.numerator}/{time_signature.denominator}  "
          f"{model.tempo_at_q(0):.1f} qpm")
    print(f"  Blocks: {len(model.blocks)}")
    print()
    for block in model.blocks:
        print(format_block(model, block))

    if len(model.diagnostics):
        print()
        print("Diagnostics:")
        for diagnostic in model.diagnostics:
            print(f"  [{diagnostic.kind.value}] {diagnostic.message}")


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser with all commands."""
    parser = argparse.ArgumentParser(
        description="Convert notes into numbered musical notation blocks"
    )
    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # segment command
    segment_parser = subparsers.add_parser(
        'segment',
        help='Segment a score and export the blocks'
    )
    segment_parser.add_argument(
        'input',
        type=str,
        help='Input score (.mid, .midi or .json)'
    )
    segment_parser.add_argument(
        '--output',
        type=str,
        required=True,
        help='Output file path'
    )
    segment_parser.add_argument(
        '--format',
        type=str,
        choices=OUTPUT_FORMATS,
        help='Output format (default: json)'
    )
    add_config_arguments(segment_parser)
    segment_parser.set_defaults(func=segment)

    # info command
    info_parser = subparsers.add_parser(
        'info',
        help='Print a block summary of a score'
    )
    info_parser.add_argument(
        'input',
        type=str,
        help='Input score (.mid, .midi or .json)'
    )
    add_config_arguments(info_parser)
    info_parser.set_defaults(func=info)

    return parser


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        args.func(args)
    except INPUT_ERRORS as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
