"""Unit tests for context_recommender_service.models.schema."""
from sqlalchemy import Float, Integer, String

from context_recommender_service.models import RecommenderFamily
from context_recommender_service.models.schema import (
    build_factor_table,
    build_index_table,
    build_similarity_table,
    build_view_table,
    index_table_name,
    model_name_columns,
    reserved_index_columns,
)


class TestIndexTableName:
    """Tests for index_table_name."""

    def test_index_table_name_is_lower_case(self):
        """Test that the index table name is case-folded."""
        assert index_table_name("Foo") == "fooindex"


class TestBuildIndexTable:
    """Tests for build_index_table."""

    def test_cf_index_has_one_model_column(self):
        """Test that CF families get a single model name column."""
        table = build_index_table("fooindex", RecommenderFamily.ITEM_CF, [])

        names = [col.name for col in table.columns]
        assert "model_name" in names
        assert "user_model_name" not in names
        assert names[0] == "system_id"

    def test_svd_index_has_two_model_columns(self):
        """Test that SVD gets user and item model name columns."""
        table = build_index_table("fooindex", RecommenderFamily.SVD, [])

        names = [col.name for col in table.columns]
        assert "user_model_name" in names
        assert "item_model_name" in names
        assert "model_name" not in names

    def test_context_attributes_are_non_null_text_in_order(self):
        """Test that context columns follow the bookkeeping columns in request order."""
        table = build_index_table("fooindex", RecommenderFamily.USER_CF, ["season", "region"])

        names = [col.name for col in table.columns]
        assert names[-2:] == ["season", "region"]
        assert isinstance(table.c.region.type, String)
        assert not table.c.region.nullable

    def test_counter_column_types(self):
        """Test counter and rate column types."""
        table = build_index_table("fooindex", RecommenderFamily.ITEM_CF, [])

        assert isinstance(table.c.rating_total.type, Integer)
        assert isinstance(table.c.update_rate.type, Float)


class TestModelTables:
    """Tests for model and view table builders."""

    def test_item_similarity_table(self):
        """Test item pair columns."""
        table = build_similarity_table("m", RecommenderFamily.ITEM_CF)

        assert [col.name for col in table.columns] == ["item1", "item2", "similarity"]

    def test_user_similarity_table(self):
        """Test user pair columns."""
        table = build_similarity_table("m", RecommenderFamily.USER_CF)

        assert [col.name for col in table.columns] == ["user1", "user2", "similarity"]

    def test_factor_table(self):
        """Test factor table columns."""
        table = build_factor_table("m", "item")

        assert [col.name for col in table.columns] == ["item_id", "feature", "value"]

    def test_view_table_keyed_on_user_and_item(self):
        """Test that the view's primary key is (user key, item key)."""
        table = build_view_table("v", "uid", "iid")

        assert [col.name for col in table.primary_key.columns] == ["uid", "iid"]
        assert "rec_score" in table.c


class TestReservedColumns:
    """Tests for reserved_index_columns and model_name_columns."""

    def test_reserved_columns_cover_every_family(self):
        """Test that all fixed index columns are reserved."""
        reserved = reserved_index_columns()

        assert {"system_id", "model_name", "user_model_name", "item_model_name",
                "view_name", "rating_total", "created_at"} <= reserved

    def test_model_name_columns(self):
        """Test model name columns per family."""
        assert model_name_columns(RecommenderFamily.ITEM_CF) == ("model_name",)
        assert model_name_columns(RecommenderFamily.SVD) == ("user_model_name", "item_model_name")
