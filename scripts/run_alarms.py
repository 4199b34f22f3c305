#!/usr/bin/env python3
"""Run the alarm scheduler locally in interactive mode."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from main import main


if __name__ == "__main__":
    sys.exit(main(["--run"]))
