"""Statement-level access to the host database for per-recommender tables."""

import logging
from typing import Iterable

from sqlalchemy import Column, MetaData, Table, func, inspect, select
from sqlalchemy.engine import Result
from sqlalchemy.orm import Session
from sqlalchemy.schema import CreateTable, DropTable

from context_recommender_service.models.schema import VIEW_SENTINEL

logger = logging.getLogger(__name__)


class ArtifactRepository:
    """
    Issues DDL and DML against the session's connection.

    Statements run inside whatever transaction the session holds; the
    caller decides when to commit.
    """

    def __init__(self, db: Session):
        self.db = db

    def execute_ddl(self, statement) -> None:
        """Execute a schema statement (CREATE / DROP)."""
        self.db.connection().execute(statement)

    def execute_dml(self, statement, parameters=None) -> int:
        """
        Execute an INSERT / UPDATE / DELETE.

        Returns:
            Number of rows affected
        """
        result = self.db.execute(statement, parameters)
        return result.rowcount

    def open_cursor(self, statement) -> Result:
        """Run a query and return its open result."""
        return self.db.execute(statement)

    def close_cursor(self, cursor: Result) -> None:
        cursor.close()

    def table_exists(self, name: str) -> bool:
        """Check if a table exists in the database."""
        return inspect(self.db.connection()).has_table(name)

    def table_columns(self, name: str) -> list[str]:
        """Column names of an existing table, in declaration order."""
        return [col["name"] for col in inspect(self.db.connection()).get_columns(name)]

    def reflect_table(self, name: str) -> Table:
        """Load an existing table's definition from the database."""
        return Table(name, MetaData(), autoload_with=self.db.connection())

    def column(self, table: Table, name: str) -> Column:
        """
        Look up a column of a reflected table, ignoring case.

        Raises:
            KeyError: If the table has no such column
        """
        if name in table.c:
            return table.c[name]
        for col in table.columns:
            if col.name.lower() == name.lower():
                return col
        raise KeyError(f"{table.name}.{name}")

    def create_table(self, table: Table) -> Table:
        """Create a table from its description."""
        self.execute_ddl(CreateTable(table))
        logger.debug(f"Created table {table.name}")
        return table

    def drop_table_if_exists(self, name: str) -> bool:
        """
        Drop a table, ignoring it if it is already gone.

        Returns:
            True if the table existed
        """
        existed = self.table_exists(name)
        self.execute_ddl(DropTable(Table(name, MetaData()), if_exists=True))
        if existed:
            logger.debug(f"Dropped table {name}")
        return existed

    def insert_rows(self, table: Table, rows: Iterable[dict], batch_size: int = 1000) -> int:
        """
        Insert rows into a table in batches.

        Args:
            table: Target table
            rows: Row dicts keyed by column name
            batch_size: Number of rows per INSERT

        Returns:
            Number of rows inserted
        """
        count = 0
        batch = []
        for row in rows:
            batch.append(row)
            if len(batch) >= batch_size:
                self.db.execute(table.insert(), batch)
                count += len(batch)
                batch = []

        if batch:
            self.db.execute(table.insert(), batch)
            count += len(batch)

        return count

    def seed_view(self, view: Table) -> None:
        """Insert the placeholder row every view table starts with."""
        user_col, item_col, score_col = (col.name for col in view.columns)
        user_id, item_id, score = VIEW_SENTINEL
        self.execute_dml(view.insert().values({user_col: user_id, item_col: item_id, score_col: score}))

    def count_rows(self, name: str) -> int:
        """Count rows in an existing table."""
        table = self.reflect_table(name)
        return self.db.execute(select(func.count()).select_from(table)).scalar_one()
