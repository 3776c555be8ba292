"""
Pytest configuration and fixtures for treefuzz tests.
"""

import sys
import random
import pytest
from pathlib import Path

# Add project root to path for all imports
project_root = str(Path(__file__).parent.parent)
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from config import TreefuzzConfig
from grammar import BuiltinGrammars, Grammar


@pytest.fixture
def arithmetic_grammar():
    """Left-recursive arithmetic grammar."""
    return BuiltinGrammars.load("arithmetic")


@pytest.fixture
def peg_grammar():
    """Arithmetic grammar without left recursion."""
    return BuiltinGrammars.load("arithmetic_peg")


@pytest.fixture
def ambiguous_grammar():
    """Expression grammar without precedence."""
    return BuiltinGrammars.load("ambiguous")


@pytest.fixture
def prefix_grammar():
    """Grammar where the first alternative is a prefix of the second."""
    return Grammar.from_dict({
        "<start>": ["<a>"],
        "<a>": ["x", "xy"],
    })


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def seed_dir(tmp_path):
    """Seed directory with arithmetic inputs."""
    seeds = tmp_path / "seeds"
    seeds.mkdir()
    (seeds / "seed1.txt").write_text("1+2")
    (seeds / "seed2.txt").write_text("(3*4)-5\n")
    (seeds / "broken.txt").write_text("1+)(")
    (seeds / "notes.json").write_text('{"ignored": true}')
    return seeds


@pytest.fixture
def fuzz_config(tmp_path):
    """Fuzzer configuration writing only below tmp_path."""
    def make(**kwargs):
        values = {
            "grammar": "arithmetic",
            "parser": "earley",
            "output_dir": str(tmp_path / "testcases"),
            "crash_dir": str(tmp_path / "crashes"),
            "seed": 7,
            "testcases": 5,
        }
        values.update(kwargs)
        return TreefuzzConfig(**values)
    return make
