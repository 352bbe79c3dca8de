"""Entry point for recommender lifecycle requests."""
import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from context_recommender_service.errors import CatalogStateError
from context_recommender_service.models import RecommenderCatalogEntry, RecommenderProperties
from context_recommender_service.models.cell import CellRecord
from context_recommender_service.repos import CatalogRepository
from context_recommender_service.services.cancellation import CancellationToken
from context_recommender_service.services.modeling_backend import ModelingBackend, create_backend
from context_recommender_service.services.recommender_builder import RecommenderBuilder
from context_recommender_service.services.recommender_destroyer import RecommenderDestroyer
from context_recommender_service.services.request_types import (
    BuildRequest,
    BuildResult,
    DestroyReport,
    DestroyRequest,
)

logger = logging.getLogger(__name__)


class RecommenderManager:
    """
    Creates, drops and describes recommenders.

    Each request runs in its own session from ``session_factory``.
    """

    def __init__(
            self,
            session_factory: Optional[Callable[[], Session]] = None,
            backend_factory: Callable[..., ModelingBackend] = create_backend,
            atomic: Optional[bool] = None
    ):
        """
        Initialize the manager.

        Args:
            session_factory: Session factory (default: configured SessionLocal)
            backend_factory: Modeling backend selector passed to the builder
            atomic: Build as one unit of work (None = configured default)
        """
        if session_factory is None:
            from context_recommender_service.models.database import SessionLocal
            session_factory = SessionLocal

        self.session_factory = session_factory
        self.backend_factory = backend_factory
        self.atomic = atomic

    def create_recommender(
            self,
            request: BuildRequest,
            token: Optional[CancellationToken] = None
    ) -> BuildResult:
        """Build a recommender and all of its cells."""
        db = self.session_factory()
        try:
            builder = RecommenderBuilder(db, backend_factory=self.backend_factory, atomic=self.atomic)
            return builder.build(request, token)
        finally:
            db.close()

    def drop_recommender(
            self,
            name: str,
            token: Optional[CancellationToken] = None
    ) -> DestroyReport:
        """Drop a recommender and every artifact it owns."""
        db = self.session_factory()
        try:
            return RecommenderDestroyer(db).destroy(DestroyRequest(name=name), token)
        finally:
            db.close()

    def list_recommenders(self) -> list[dict]:
        """Describe every defined recommender."""
        db = self.session_factory()
        try:
            return [self._describe(entry) for entry in CatalogRepository(db).list_recommenders()]
        finally:
            db.close()

    def get_recommender(self, name: str) -> dict:
        """
        Describe one recommender.

        Raises:
            CatalogStateError: If the recommender does not exist
        """
        db = self.session_factory()
        try:
            entry = CatalogRepository(db).get_recommender(name.lower())
            if entry is None:
                raise CatalogStateError(f"recommender {name.lower()} does not exist")
            return self._describe(entry)
        finally:
            db.close()

    def list_cells(self, name: str) -> list[CellRecord]:
        """
        Get every cell of a recommender.

        Raises:
            CatalogStateError: If the recommender does not exist
        """
        db = self.session_factory()
        try:
            catalog = CatalogRepository(db)
            entry = catalog.get_recommender(name.lower())
            if entry is None:
                raise CatalogStateError(f"recommender {name.lower()} does not exist")
            family = catalog.fetch_algorithm_family(entry.index_table_name)
            return catalog.list_cells(entry.index_table_name, family)
        finally:
            db.close()

    def get_properties(self) -> Optional[dict]:
        """Get the global properties, or None before the first build."""
        db = self.session_factory()
        try:
            properties: RecommenderProperties | None = CatalogRepository(db).get_properties()
            if properties is None:
                return None
            return {
                'update_threshold': properties.update_threshold,
                'tail_length': properties.tail_length,
                'verbose_queries': properties.verbose_queries,
            }
        finally:
            db.close()

    def _describe(self, entry: RecommenderCatalogEntry) -> dict:
        return {
            'index_table': entry.index_table_name,
            'user_table': entry.user_table,
            'item_table': entry.item_table,
            'rating_table': entry.rating_table,
            'user_key': entry.user_key,
            'item_key': entry.item_key,
            'rating_column': entry.rating_column,
            'method': entry.method,
            'context_attributes': entry.context_attribute_count,
        }
