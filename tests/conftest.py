"""Configure test paths."""
import sys
from pathlib import Path

TESTS_DIR = Path(__file__).parent

# src/ for the package, tests/ for the shared synthetic forum pages
sys.path.insert(0, str(TESTS_DIR.parent / "src"))
sys.path.insert(0, str(TESTS_DIR))
