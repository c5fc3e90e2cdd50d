"""
Pytest Configuration and Fixtures
=================================

Provides shared fixtures for the test suite:
- Temporary recipes database (SQLite file under tmp_path)
- RecipeStore bound to that database
- Stub HTTP session for the page fetcher

No test touches the network or data/recipes.db.
"""

import sqlite3
from typing import Dict, List, Optional, Union
from unittest.mock import MagicMock

import pytest
import requests

from recipe_store import RecipeStore


# =============================================================================
# Helpers
# =============================================================================

def create_recipes_table(db_path, with_image_column: bool = True):
    """Create the recipes table the CSV loader would have created."""
    conn = sqlite3.connect(db_path)
    image_column = ', "ImageURL" TEXT' if with_image_column else ""
    conn.execute(f"""
        CREATE TABLE recipes (
            id INTEGER PRIMARY KEY,
            "RecipeName" TEXT,
            "Cuisine" TEXT,
            "URL" TEXT{image_column}
        )
    """)
    conn.commit()
    conn.close()


def insert_recipes(db_path, rows: List[tuple]):
    """Insert (id, name, url, image_url) rows."""
    conn = sqlite3.connect(db_path)
    conn.executemany(
        'INSERT INTO recipes (id, "RecipeName", "URL", "ImageURL") VALUES (?, ?, ?, ?)',
        rows
    )
    conn.commit()
    conn.close()


def make_response(status_code: int = 200, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.content = text.encode("utf-8")
    return response


class StubSession:
    """
    Stands in for requests.Session.

    Each URL maps to either a response (see make_response) or an exception
    instance to raise. Unknown URLs raise ConnectionError.
    """

    def __init__(self, routes: Optional[Dict[str, Union[MagicMock, Exception]]] = None):
        self.routes = routes or {}
        self.calls = []
        self.closed = False

    def get(self, url, headers=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "timeout": timeout})
        result = self.routes.get(url)
        if result is None:
            raise requests.exceptions.ConnectionError(f"no route for {url}")
        if isinstance(result, Exception):
            raise result
        return result

    def close(self):
        self.closed = True


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def recipe_db(tmp_path):
    """Path to an empty recipes database."""
    db_path = tmp_path / "recipes.db"
    create_recipes_table(db_path)
    return str(db_path)


@pytest.fixture
def store(recipe_db):
    """RecipeStore over the temporary database."""
    recipe_store = RecipeStore(recipe_db)
    yield recipe_store
    recipe_store.close()


# =============================================================================
# Test Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "readonly: marks test as read-only (no database writes)"
    )
    config.addinivalue_line(
        "markers", "creates_data: marks test as writing to a temporary database"
    )
