"""Repository for the recommender catalog: recommender list, properties and index tables."""

import logging
from datetime import UTC, datetime

from sqlalchemy import Table, select
from sqlalchemy.orm import Session

from context_recommender_service.config import (
    get_tail_length,
    get_update_threshold,
    get_verbose_queries,
)
from context_recommender_service.errors import CatalogStateError
from context_recommender_service.models import (
    Base,
    RecommenderCatalogEntry,
    RecommenderFamily,
    RecommenderMethod,
    RecommenderProperties,
)
from context_recommender_service.models.cell import CellArtifacts, CellRecord
from context_recommender_service.models.schema import (
    build_index_table,
    index_table_name,
    model_name_columns,
    reserved_index_columns,
)
from context_recommender_service.repos.artifact_repository import ArtifactRepository

logger = logging.getLogger(__name__)


class CatalogRepository:
    """
    Repository for the durable catalog describing every recommender.

    Methods flush but never commit; the calling service owns the unit of work.
    """

    def __init__(self, db: Session, artifacts: ArtifactRepository | None = None):
        self.db = db
        self.artifacts = artifacts or ArtifactRepository(db)

    # ----- Global infrastructure -----

    def catalog_exists(self) -> bool:
        """Check if the recommender list table has been created."""
        return self.artifacts.table_exists(RecommenderCatalogEntry.__tablename__)

    def ensure_infrastructure(self) -> RecommenderProperties:
        """
        Create the recommender list table and the properties row if missing.

        An existing properties row is returned untouched.

        Returns:
            The global properties row
        """
        Base.metadata.create_all(
            bind=self.db.connection(),
            tables=[RecommenderCatalogEntry.__table__, RecommenderProperties.__table__],
            checkfirst=True,
        )

        properties = self.db.query(RecommenderProperties).first()
        if properties is None:
            properties = RecommenderProperties(
                update_threshold=get_update_threshold(),
                tail_length=get_tail_length(),
                verbose_queries=get_verbose_queries(),
            )
            self.db.add(properties)
            self.db.flush()
            logger.info("✓ Created recommender properties with defaults")

        return properties

    def get_properties(self) -> RecommenderProperties | None:
        """Get the global properties row, if the catalog has one."""
        if not self.artifacts.table_exists(RecommenderProperties.__tablename__):
            return None
        return self.db.query(RecommenderProperties).first()

    # ----- Recommender list -----

    def add_recommender(
            self,
            name: str,
            user_table: str,
            item_table: str,
            rating_table: str,
            user_key: str,
            item_key: str,
            rating_column: str,
            method: RecommenderMethod,
            context_attribute_count: int
    ) -> RecommenderCatalogEntry:
        """
        Append one recommender to the list table.

        Returns:
            The new catalog entry
        """
        entry = RecommenderCatalogEntry(
            index_table_name=index_table_name(name),
            user_table=user_table,
            item_table=item_table,
            rating_table=rating_table,
            user_key=user_key,
            item_key=item_key,
            rating_column=rating_column,
            method=method.value,
            context_attribute_count=context_attribute_count,
            created_at=datetime.now(UTC),
        )
        self.db.add(entry)
        self.db.flush()

        logger.info(f"Registered recommender {name} ({method.value})")
        return entry

    def get_recommender(self, name: str) -> RecommenderCatalogEntry | None:
        """Get a recommender's catalog entry by recommender name."""
        if not self.catalog_exists():
            return None
        return (
            self.db.query(RecommenderCatalogEntry)
            .filter(RecommenderCatalogEntry.index_table_name == index_table_name(name))
            .first()
        )

    def recommender_exists(self, name: str) -> bool:
        """Check if a recommender is defined in the catalog."""
        return self.get_recommender(name) is not None

    # noinspection PyTypeChecker
    def list_recommenders(self) -> list[RecommenderCatalogEntry]:
        """Get every defined recommender, oldest first."""
        if not self.catalog_exists():
            return []
        return (
            self.db.query(RecommenderCatalogEntry)
            .order_by(RecommenderCatalogEntry.recommender_id)
            .all()
        )

    def fetch_algorithm_family(self, index_table: str) -> RecommenderFamily:
        """
        Read back the family of the recommender owning an index table.

        Raises:
            CatalogStateError: If no recommender uses this index table
        """
        method = self.db.execute(
            select(RecommenderCatalogEntry.method)
            .where(RecommenderCatalogEntry.index_table_name == index_table)
        ).scalar_one_or_none()

        if method is None:
            raise CatalogStateError(f"no catalog entry for index table {index_table}")

        return RecommenderMethod.parse(method).family

    def remove_recommender(self, index_table: str) -> int:
        """
        Delete a recommender's row from the list table.

        Returns:
            Number of deleted rows
        """
        count = (
            self.db.query(RecommenderCatalogEntry)
            .filter(RecommenderCatalogEntry.index_table_name == index_table)
            .delete()
        )
        self.db.flush()
        return count

    # ----- Index tables -----

    def create_index_table(
            self,
            name: str,
            family: RecommenderFamily,
            context_attributes: list[str]
    ) -> Table:
        """Create a recommender's index table and return it."""
        table = build_index_table(index_table_name(name), family, context_attributes)
        return self.artifacts.create_table(table)

    def append_cell(
            self,
            index_table: Table,
            artifacts: CellArtifacts,
            rating_total: int,
            context: dict[str, str]
    ) -> None:
        """
        Append one cell row to an index table.

        Counters start at zero; attribute values fill the context columns.
        """
        family_columns = [
            col.name for col in index_table.columns
            if col.name in ("model_name", "user_model_name", "item_model_name")
        ]
        if len(family_columns) != len(artifacts.model_names):
            raise CatalogStateError(
                f"index table {index_table.name} expects {len(family_columns)} model names, "
                f"got {len(artifacts.model_names)}"
            )

        row = dict(zip(family_columns, artifacts.model_names))
        row.update(
            view_name=artifacts.view_name,
            update_counter=0,
            rating_total=rating_total,
            query_counter=0,
            update_rate=0.0,
            query_rate=0.0,
            created_at=datetime.now(UTC),
        )
        row.update(context)

        self.artifacts.execute_dml(index_table.insert().values(row))

    def list_cells(self, index_table: str, family: RecommenderFamily) -> list[CellRecord]:
        """
        Read every cell of a recommender, in creation order.

        Args:
            index_table: Index table name
            family: Family of the recommender (decides the model columns)

        Returns:
            List of CellRecord objects
        """
        table = self.artifacts.reflect_table(index_table)
        model_columns = model_name_columns(family)
        reserved = reserved_index_columns()
        context_columns = [col.name for col in table.columns if col.name not in reserved]

        cursor = self.artifacts.open_cursor(select(table).order_by(table.c.system_id))
        try:
            rows = cursor.mappings().all()
        finally:
            self.artifacts.close_cursor(cursor)

        cells = []
        for row in rows:
            cells.append(CellRecord(
                system_id=row["system_id"],
                artifacts=CellArtifacts(
                    model_names=tuple(row[col] for col in model_columns),
                    view_name=row["view_name"],
                ),
                rating_total=row["rating_total"],
                context={col: row[col] for col in context_columns},
            ))

        return cells

    def drop_index_table(self, index_table: str) -> bool:
        """Drop an index table if it exists."""
        return self.artifacts.drop_table_if_exists(index_table)
