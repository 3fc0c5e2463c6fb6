#!/usr/bin/env python3
"""
Jianpu Blocks - numbered musical notation segmentation

Main entry point for the jianpu converter.

Author: Development Team
Version: 0.1.0-dev
"""

import sys

from src.converter.cli import main as cli_main


VERSION = "0.1.0-dev"


def main():
    """Main entry point."""
    if len(sys.argv) > 1 and sys.argv[1] == "--version":
        print(f"Jianpu Blocks {VERSION}")
        return 0

    cli_main(sys.argv[1:])
    return 0


if __name__ == "__main__":
    sys.exit(main())
