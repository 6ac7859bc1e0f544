"""Pytest conftest: path setup so tests can import the collector modules and helpers."""

import sys
from pathlib import Path

# Add the repo root to sys.path so `from flow_fetch import ...` works
ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

# Add tests/ to sys.path so `from helpers import ...` works
TESTS_DIR = Path(__file__).resolve().parent
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))
