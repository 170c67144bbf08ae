"""Shared pytest fixtures for doing-journal tests."""

import tempfile
from datetime import datetime
from pathlib import Path

import pytest

from doing_journal.config import DoingConfig
from doing_journal.engine import DoingEngine
from doing_journal.parser import parse

FIXED_NOW = datetime(2024, 1, 10, 12, 0)

SAMPLE_JOURNAL = """Currently:
- 2024-01-10 09:00 | Write parser @coding
- 2024-01-10 10:30 | Team meeting @meeting
\tDiscussed roadmap
Later:
- 2024-01-09 15:00 | Review PR @review @done(2024-01-09 16:00)
Archive:
- 2024-01-08 11:00 | Old task @done(2024-01-08 12:00) @from(Currently)
"""


@pytest.fixture
def temp_project():
    """Create a temporary project directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config(temp_project):
    """Create a test configuration."""
    return DoingConfig(project_root=temp_project)


@pytest.fixture
def clock():
    """A clock frozen at 2024-01-10 12:00 (a Wednesday)."""
    return lambda: FIXED_NOW


@pytest.fixture
def engine(config, clock):
    """Create a test engine with a fixed clock."""
    return DoingEngine(config, clock=clock)


@pytest.fixture
def journal(temp_project):
    """Write the sample journal to doing.md."""
    path = temp_project / "doing.md"
    path.write_text(SAMPLE_JOURNAL, encoding="utf-8")
    return path


@pytest.fixture
def loaded(engine, journal):
    """Engine with the sample journal loaded."""
    engine.load()
    return engine


@pytest.fixture
def store():
    """The sample journal parsed into a content store."""
    return parse(SAMPLE_JOURNAL)
