"""Enumerate the context cells present in a source table."""
import logging
from typing import Iterator

from sqlalchemy import String, cast, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from context_recommender_service.errors import BackendFailureError
from context_recommender_service.repos import ArtifactRepository

logger = logging.getLogger(__name__)


class PartitionEnumerator:
    """
    Produces one mapping per distinct context-value combination.

    Values are the engine's textual rendering of each attribute, keyed
    by attribute name, so that the same text can be used as a filter.
    """

    def __init__(self, db: Session, artifacts: ArtifactRepository | None = None):
        self.db = db
        self.artifacts = artifacts or ArtifactRepository(db)

    def enumerate(self, table_name: str, attributes: list[str]) -> Iterator[dict[str, str]]:
        """
        Yield the distinct combinations of ``attributes`` in ``table_name``.

        The query runs on first iteration. Rows are read in full before
        the first cell is yielded so the caller can issue DDL on the same
        connection while iterating. Combinations containing NULL are skipped.

        Args:
            table_name: Table to partition
            attributes: Ordered attribute column names (may be empty)

        Yields:
            Dict of attribute name to value; a single empty dict when
            there are no attributes

        Raises:
            BackendFailureError: If the source table cannot be queried
        """
        if not attributes:
            yield {}
            return

        try:
            table = self.artifacts.reflect_table(table_name)
            source_columns = [self.artifacts.column(table, attr) for attr in attributes]
            stmt = select(
                *(cast(col, String).label(attr) for col, attr in zip(source_columns, attributes))
            ).distinct()
            for col in source_columns:
                stmt = stmt.where(col.is_not(None))

            cursor = self.artifacts.open_cursor(stmt)
            try:
                rows = cursor.mappings().all()
            finally:
                self.artifacts.close_cursor(cursor)
        except (SQLAlchemyError, KeyError) as e:
            raise BackendFailureError(f"failed to enumerate cells of {table_name}: {e}") from e

        logger.info(f"Found {len(rows)} context cells in {table_name} over {', '.join(attributes)}")

        for row in rows:
            yield {attr: row[attr] for attr in attributes}
