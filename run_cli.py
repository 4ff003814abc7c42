#!/usr/bin/env python3
"""
Entry point wrapper for the backup CLI.
This script ensures the package is importable from a source checkout.
"""
import sys
from pathlib import Path

# Add src directory to path
src_path = Path(__file__).parent / 'src'
if src_path.exists():
    sys.path.insert(0, str(src_path))

from backup_tool.cli import cli

if __name__ == '__main__':
    cli()
