"""Unit tests for context_recommender_service.repos.artifact_repository."""
import pytest
from sqlalchemy import select, text

from context_recommender_service.models import RecommenderFamily
from context_recommender_service.models.schema import build_similarity_table, build_view_table
from context_recommender_service.repos.artifact_repository import ArtifactRepository


class TestArtifactRepositoryInit:
    """Tests for ArtifactRepository initialization."""

    def test_init_with_session(self, test_db_session):
        """Test initialization with database session."""
        repo = ArtifactRepository(test_db_session)

        assert repo.db == test_db_session


class TestTableLifecycle:
    """Tests for creating, inspecting and dropping tables."""

    def test_create_table_and_exists(self, artifact_repository):
        """Test that a created table exists."""
        table = build_similarity_table("foo_model_1", RecommenderFamily.ITEM_CF)

        artifact_repository.create_table(table)

        assert artifact_repository.table_exists("foo_model_1")
        assert artifact_repository.table_columns("foo_model_1") == ["item1", "item2", "similarity"]

    def test_table_exists_false_for_missing(self, artifact_repository):
        """Test table_exists on a missing table."""
        assert not artifact_repository.table_exists("missing_table")

    def test_drop_table_if_exists_drops(self, artifact_repository):
        """Test dropping an existing table."""
        artifact_repository.create_table(build_similarity_table("foo_model_1", RecommenderFamily.ITEM_CF))

        existed = artifact_repository.drop_table_if_exists("foo_model_1")

        assert existed is True
        assert not artifact_repository.table_exists("foo_model_1")

    def test_drop_table_if_exists_ignores_missing(self, artifact_repository):
        """Test that dropping a missing table is not an error."""
        existed = artifact_repository.drop_table_if_exists("never_created")

        assert existed is False

    def test_reflect_table(self, artifact_repository, source_tables):
        """Test reflecting an existing table."""
        table = artifact_repository.reflect_table("ratings")

        assert [col.name for col in table.columns] == ["uid", "iid", "rating"]


class TestColumn:
    """Tests for the case-insensitive column lookup."""

    def test_exact_name(self, artifact_repository, source_tables):
        """Test an exactly spelled column."""
        table = artifact_repository.reflect_table('ratings')

        assert artifact_repository.column(table, 'rating').name == 'rating'

    def test_other_case(self, artifact_repository, mixed_case_tables):
        """Test that a lower-case name finds a mixed-case column."""
        table = artifact_repository.reflect_table('mratings')

        assert artifact_repository.column(table, 'rating').name == 'Rating'

    def test_missing_column(self, artifact_repository, source_tables):
        """Test that an unknown column raises KeyError."""
        table = artifact_repository.reflect_table('ratings')

        with pytest.raises(KeyError):
            artifact_repository.column(table, 'score')


class TestStatements:
    """Tests for DDL/DML/cursor helpers."""

    def test_execute_ddl_and_dml(self, artifact_repository, test_db_session):
        """Test raw DDL and DML execution."""
        artifact_repository.execute_ddl(text("CREATE TABLE scratch (id INTEGER)"))

        affected = artifact_repository.execute_dml(text("INSERT INTO scratch VALUES (1), (2)"))

        assert affected == 2
        assert test_db_session.execute(text("SELECT count(*) FROM scratch")).scalar() == 2

    def test_open_and_close_cursor(self, artifact_repository, source_tables):
        """Test reading through a cursor."""
        table = artifact_repository.reflect_table("items")

        cursor = artifact_repository.open_cursor(select(table.c.iid).order_by(table.c.iid))
        rows = [row[0] for row in cursor]
        artifact_repository.close_cursor(cursor)

        assert rows == [10, 20, 30]


class TestInsertRows:
    """Tests for insert_rows."""

    def test_insert_rows_in_batches(self, artifact_repository, test_db_session):
        """Test batch insert counts every row."""
        table = artifact_repository.create_table(
            build_similarity_table("foo_model_1", RecommenderFamily.ITEM_CF)
        )
        rows = ({"item1": i, "item2": i + 1, "similarity": 0.5} for i in range(10))

        count = artifact_repository.insert_rows(table, rows, batch_size=3)

        assert count == 10
        assert artifact_repository.count_rows("foo_model_1") == 10

    def test_insert_rows_empty(self, artifact_repository):
        """Test inserting nothing."""
        table = artifact_repository.create_table(
            build_similarity_table("foo_model_1", RecommenderFamily.ITEM_CF)
        )

        assert artifact_repository.insert_rows(table, [], batch_size=3) == 0


class TestSeedView:
    """Tests for seed_view."""

    def test_seed_view_inserts_sentinel(self, artifact_repository, test_db_session):
        """Test that a new view holds exactly the placeholder row."""
        view = artifact_repository.create_table(build_view_table("foo_view_1", "uid", "iid"))

        artifact_repository.seed_view(view)

        rows = test_db_session.execute(select(view)).all()
        assert [tuple(row) for row in rows] == [(-1, -1, -1.0)]
