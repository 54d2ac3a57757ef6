"""
Test package for the live configuration engine.

Unit tests live under tests/unit, organized like the source package;
tests/integration drives the engine against real backing files.
"""

import sys
from pathlib import Path

# Add source directory to Python path for testing
test_dir = Path(__file__).parent
project_root = test_dir.parent
src_dir = project_root / "src"

if str(src_dir) not in sys.path:
    sys.path.insert(0, str(src_dir))
