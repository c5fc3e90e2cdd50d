"""
Tests for the SQLite recipe store.

Run: pytest tests/test_recipe_store.py -v
"""

import sqlite3

import pytest

from conftest import create_recipes_table, insert_recipes
from recipe_store import ImageStats, RecipeStore, RecipeStoreError, RecipeStoreWriteError


ROWS = [
    (3, "Masala Dosa", "https://x/dosa", None),
    (1, "Palak Paneer", "https://x/palak", "https://x/palak.jpg"),
    (2, "Chana Masala", "https://x/chana", None),
    (5, "Rava Kesari", "https://x/kesari", None),
    (4, "Aloo Gobi", "https://x/aloo", "https://via.placeholder.com/600x400"),
]


class TestInit:

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(RecipeStoreError) as exc_info:
            RecipeStore(str(tmp_path / "missing.db"))
        assert exc_info.value.operation == "init"
        assert "missing.db" in str(exc_info.value)

    def test_check_connection_without_table(self, tmp_path):
        db_path = tmp_path / "empty.db"
        sqlite3.connect(db_path).close()
        with RecipeStore(str(db_path)) as store:
            with pytest.raises(RecipeStoreError) as exc_info:
                store.check_connection()
        assert exc_info.value.operation == "check_connection"

    def test_check_connection_ok(self, store):
        assert store.check_connection() is True


class TestEnsureImageColumn:

    def test_adds_missing_column(self, tmp_path):
        db_path = tmp_path / "fresh.db"
        create_recipes_table(db_path, with_image_column=False)
        with RecipeStore(str(db_path)) as store:
            assert store.ensure_image_column() is True
            assert store.ensure_image_column() is False
            assert store.count_missing_image() == 0

    def test_existing_column_untouched(self, store):
        assert store.ensure_image_column() is False


class TestReads:

    @pytest.fixture(autouse=True)
    def _seed(self, recipe_db):
        insert_recipes(recipe_db, ROWS)

    @pytest.mark.readonly
    def test_select_only_missing_ordered_by_id(self, store):
        rows = store.select_missing_image(limit=10)
        assert [r["id"] for r in rows] == [2, 3, 5]
        assert rows[0] == {"id": 2, "name": "Chana Masala", "url": "https://x/chana"}

    @pytest.mark.readonly
    def test_select_limit_and_offset(self, store):
        assert [r["id"] for r in store.select_missing_image(limit=2, offset=0)] == [2, 3]
        assert [r["id"] for r in store.select_missing_image(limit=2, offset=2)] == [5]
        assert store.select_missing_image(limit=2, offset=4) == []

    @pytest.mark.readonly
    def test_count_missing(self, store):
        assert store.count_missing_image() == 3

    @pytest.mark.readonly
    def test_aggregate_stats(self, store):
        assert store.aggregate_image_stats() == ImageStats(total=5, with_image=2, without_image=3)

    @pytest.mark.readonly
    def test_get_image(self, store):
        assert store.get_image(1) == "https://x/palak.jpg"
        assert store.get_image(2) is None
        assert store.get_image(99) is None


class TestWrites:

    @pytest.fixture(autouse=True)
    def _seed(self, recipe_db):
        insert_recipes(recipe_db, ROWS)

    @pytest.mark.creates_data
    def test_update_removes_from_missing_set(self, store):
        assert store.update_image(3, "https://x/dosa.jpg") is True
        assert store.get_image(3) == "https://x/dosa.jpg"
        assert [r["id"] for r in store.select_missing_image(limit=10)] == [2, 5]
        assert store.count_missing_image() == 2

    @pytest.mark.creates_data
    def test_update_is_committed(self, store, recipe_db):
        store.update_image(2, "https://x/chana.jpg")
        conn = sqlite3.connect(recipe_db)
        value = conn.execute('SELECT "ImageURL" FROM recipes WHERE id = 2').fetchone()[0]
        conn.close()
        assert value == "https://x/chana.jpg"

    @pytest.mark.creates_data
    def test_repeated_update_same_value(self, store):
        store.update_image(5, "https://x/kesari.jpg")
        store.update_image(5, "https://x/kesari.jpg")
        assert store.get_image(5) == "https://x/kesari.jpg"
        assert store.aggregate_image_stats().with_image == 3

    @pytest.mark.creates_data
    def test_unknown_id_returns_false(self, store):
        assert store.update_image(999, "https://x/none.jpg") is False
        assert store.count_missing_image() == 3

    def test_write_failure_raises_write_error(self, store):
        store.close()
        with pytest.raises(RecipeStoreWriteError):
            store.update_image(2, "https://x/chana.jpg")

    def test_closed_store_read_raises(self, store):
        store.close()
        with pytest.raises(RecipeStoreError):
            store.count_missing_image()
