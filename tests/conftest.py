import sys
import os
from tempfile import TemporaryDirectory
import pytest
# Ensure the project root is on sys.path for all tests
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from record_model import BOOL, INT, TEXT, Sequence
from tests.test_utils import record


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    with TemporaryDirectory() as dir_path:
        yield dir_path


@pytest.fixture
def derived_scenario():
    """Base1 and Base2 are reflectable, NonCap is not; Derived inherits all three in that order."""
    return [
        record("Base1", [("a", INT), ("b", TEXT), ("c", TEXT)]),
        record("Base2", [("d", Sequence(TEXT))]),
        record("NonCap", [("e", INT)], capable=False),
        record("Derived", [("f", BOOL)], bases=["Base1", "Base2", "NonCap"]),
    ]
