#!/usr/bin/env python
"""
Launcher for the Restaurant POS command line without installing the package.

Puts ``src/`` on the import path, then runs the CLI.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent / "src"))

from restaurant_pos.main import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
