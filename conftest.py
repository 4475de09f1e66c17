# type: ignore
"""
Shared fixtures. The whole suite runs against one in-memory SQLite engine.
DATABASE_URL must be set before anything under ``agenda`` is imported.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from sqlalchemy import text

from agenda.core.database import engine
from agenda.core.dependencies import get_persona_repo

get_persona_repo().create_schema()


@pytest.fixture(autouse=True)
def reset_state():
    """Wipe both tables before each test."""
    with engine.begin() as conn:
        conn.execute(text("DELETE FROM persona_friends"))
        conn.execute(text("DELETE FROM personas"))
    yield


@pytest.fixture
def repo():
    return get_persona_repo()
