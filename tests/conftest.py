# tests/conftest.py
"""
Pytest configuration for Keepwise tests.
"""

import shutil
import tempfile
from pathlib import Path

import pytest

from keepwise.actions import MemoryActions
from keepwise.database import DatabaseManager
from keepwise.memory import MemoryManager

# Register pytest-asyncio plugin
pytest_plugins = ('pytest_asyncio',)


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an asyncio test."
    )


@pytest.fixture
def temp_storage():
    """Create a temporary storage directory."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
async def db(temp_storage):
    """Initialized database in a temporary directory."""
    manager = DatabaseManager(f"sqlite+aiosqlite:///{Path(temp_storage) / 'test.db'}")
    await manager.init_db()
    yield manager
    await manager.close()


@pytest.fixture
def memory_manager(db):
    return MemoryManager(db)


@pytest.fixture
def actions(memory_manager):
    return MemoryActions(memory_manager)
