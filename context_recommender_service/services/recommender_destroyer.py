"""Drops a recommender: every cell artifact, its index table and its catalog row."""
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from context_recommender_service.errors import (
    ArtifactCleanupError,
    BackendFailureError,
    CatalogStateError,
)
from context_recommender_service.models.cell import CellRecord
from context_recommender_service.models.schema import index_table_name
from context_recommender_service.repos import ArtifactRepository, CatalogRepository
from context_recommender_service.services.cancellation import CancellationToken
from context_recommender_service.services.request_types import DestroyReport, DestroyRequest

logger = logging.getLogger(__name__)


class RecommenderDestroyer:
    """
    Removes a recommender as a sequence of independent, idempotent steps.

    Each artifact drop commits on its own. A missing table is ignored; a
    failing drop is recorded and the remaining steps still run, so that a
    partially built recommender can always be cleaned up.
    """

    def __init__(self, db: Session):
        self.db = db
        self.artifacts = ArtifactRepository(db)
        self.catalog = CatalogRepository(db, self.artifacts)

    def destroy(self, request: DestroyRequest, token: CancellationToken | None = None) -> DestroyReport:
        """
        Drop a recommender.

        Args:
            request: Destroy request (name is case-insensitive)
            token: Cancellation token checked before each artifact drop

        Returns:
            DestroyReport listing dropped tables and warnings

        Raises:
            CatalogStateError: If no recommenders exist or this one does not
            BackendFailureError: If the index table cannot be read or removed
            ArtifactCleanupError: If some cell tables could not be dropped
            RequestCancelledError: If the token trips mid-teardown
        """
        name = request.name.strip().lower()
        index_table = index_table_name(name)

        # Resolving
        if not self.catalog.catalog_exists():
            raise CatalogStateError("no recommenders have been created")
        if not self.catalog.recommender_exists(name):
            raise CatalogStateError(f"recommender {name} does not exist")
        family = self.catalog.fetch_algorithm_family(index_table)

        logger.info("=" * 60)
        logger.info(f"DROPPING RECOMMENDER {name} ({family.value})")
        logger.info("=" * 60)

        report = DestroyReport(name=name, index_table=index_table, cells_found=0)

        # Enumerating cells
        cells = self._enumerate_cells(index_table, family)
        report.cells_found = len(cells)
        if not cells:
            message = f"failed to find cells for recommender {name}"
            logger.warning(message)
            report.warnings.append(message)

        # Dropping cell artifacts
        failures = []
        for cell in cells:
            for table in cell.artifacts.table_names:
                if token is not None:
                    token.check(f"dropping {table} of cell {cell.system_id}")
                self._drop_artifact(table, report, failures)

        # Dropping the index table and the catalog row
        try:
            if self.catalog.drop_index_table(index_table):
                report.dropped_tables.append(index_table)
            self.catalog.remove_recommender(index_table)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise BackendFailureError(f"failed to remove recommender {name} from the catalog: {e}") from e

        if failures:
            names = ", ".join(table for table, _ in failures)
            raise ArtifactCleanupError(
                f"recommender {name} removed from the catalog but {len(failures)} tables "
                f"could not be dropped: {names}",
                failures,
            )

        logger.info(f"✓ Dropped recommender {name}: {len(report.dropped_tables)} tables removed")
        return report

    def _enumerate_cells(self, index_table: str, family) -> list[CellRecord]:
        """Read every cell of the index table; a missing index table has none."""
        if not self.artifacts.table_exists(index_table):
            return []
        try:
            return self.catalog.list_cells(index_table, family)
        except SQLAlchemyError as e:
            raise BackendFailureError(f"failed to read index table {index_table}: {e}") from e

    def _drop_artifact(self, table: str, report: DestroyReport, failures: list) -> None:
        """Drop one table in its own transaction, recording any failure."""
        try:
            if self.artifacts.drop_table_if_exists(table):
                report.dropped_tables.append(table)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to drop table {table}: {e}")
            failures.append((table, str(e)))
