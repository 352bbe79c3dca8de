"""Builds a context-partitioned recommender: catalog rows, cells and models."""
import logging
import time
from dataclasses import dataclass
from typing import Callable

from sqlalchemy import Table
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from context_recommender_service.config import get_request_timeout, use_atomic_builds
from context_recommender_service.errors import (
    BackendFailureError,
    CatalogStateError,
    RecommenderError,
)
from context_recommender_service.models import RecommenderFamily, RecommenderMethod
from context_recommender_service.models.cell import CellArtifacts
from context_recommender_service.models.schema import (
    build_factor_table,
    build_similarity_table,
    build_view_table,
)
from context_recommender_service.repos import ArtifactRepository, CatalogRepository
from context_recommender_service.services.cancellation import CancellationToken
from context_recommender_service.services.modeling_backend import (
    ModelingBackend,
    RatingSource,
    create_backend,
)
from context_recommender_service.services.partition_enumerator import PartitionEnumerator
from context_recommender_service.services.request_types import BuildRequest, BuildResult
from context_recommender_service.services.request_validator import validate_build_request

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FamilyDescriptor:
    """
    What varies between algorithm families.

    ``model_kinds`` names each model table of a cell (used in its name);
    ``build_models`` describes those tables given their names;
    ``precomputes`` tells whether the backend needs shared statistics.
    """

    family: RecommenderFamily
    model_kinds: tuple[str, ...]
    build_models: Callable[[tuple[str, ...]], tuple[Table, ...]]
    precomputes: bool


FAMILY_DESCRIPTORS = {
    RecommenderFamily.ITEM_CF: FamilyDescriptor(
        family=RecommenderFamily.ITEM_CF,
        model_kinds=("model",),
        build_models=lambda names: (build_similarity_table(names[0], RecommenderFamily.ITEM_CF),),
        precomputes=True,
    ),
    RecommenderFamily.USER_CF: FamilyDescriptor(
        family=RecommenderFamily.USER_CF,
        model_kinds=("model",),
        build_models=lambda names: (build_similarity_table(names[0], RecommenderFamily.USER_CF),),
        precomputes=True,
    ),
    RecommenderFamily.SVD: FamilyDescriptor(
        family=RecommenderFamily.SVD,
        model_kinds=("usermodel", "itemmodel"),
        build_models=lambda names: (
            build_factor_table(names[0], "user"),
            build_factor_table(names[1], "item"),
        ),
        precomputes=False,
    ),
}


class CellNameAllocator:
    """
    Allocates artifact names for the cells of one build.

    Names combine the recommender name, a nonce taken once when the build
    starts (microseconds since the epoch, hex) and a per-build sequence
    number, so two cells of one build can never share a name.
    """

    def __init__(self, recommender_name: str, nonce: str | None = None):
        self.recommender_name = recommender_name
        self.nonce = nonce or format(time.time_ns() // 1000, "x")
        self.sequence = 0

    def allocate(self, model_kinds: tuple[str, ...]) -> CellArtifacts:
        """Allocate the model and view names of the next cell."""
        self.sequence += 1
        suffix = f"{self.nonce}_{self.sequence}"
        return CellArtifacts(
            model_names=tuple(f"{self.recommender_name}_{kind}_{suffix}" for kind in model_kinds),
            view_name=f"{self.recommender_name}_view_{suffix}",
        )


class RecommenderBuilder:
    """
    Creates a recommender and every one of its cells.

    One skeleton serves all families; a FamilyDescriptor supplies the
    model schema and a ModelingBackend fills the models.
    """

    def __init__(
            self,
            db: Session,
            backend_factory: Callable[..., ModelingBackend] = create_backend,
            atomic: bool | None = None
    ):
        """
        Args:
            db: Database session owning the unit of work
            backend_factory: Callable(method, db, source, artifacts=...) returning a backend
            atomic: Commit once at the end (True) or after every step (False);
                None reads the configured default
        """
        self.db = db
        self.artifacts = ArtifactRepository(db)
        self.catalog = CatalogRepository(db, self.artifacts)
        self.enumerator = PartitionEnumerator(db, self.artifacts)
        self.backend_factory = backend_factory
        self.atomic = use_atomic_builds() if atomic is None else atomic

    def build(self, request: BuildRequest, token: CancellationToken | None = None) -> BuildResult:
        """
        Create a recommender from a build request.

        Args:
            request: Build request (validated here before anything is created)
            token: Cancellation token checked before each cell

        Returns:
            BuildResult describing the new recommender

        Raises:
            RequestValidationError: If the request is invalid (no side effects)
            CatalogStateError: If the recommender exists or a name collides
            BackendFailureError: If the engine or the modeling backend fails
            RequestCancelledError: If the token trips before all cells are built
        """
        method = validate_build_request(self.db, request)
        if token is None:
            token = CancellationToken(timeout=get_request_timeout())

        logger.info("=" * 60)
        logger.info(f"BUILDING RECOMMENDER {request.name} ({method.value})")
        logger.info("=" * 60)

        try:
            result = self._build(request, method, token)
            self.db.commit()
        except RecommenderError:
            self._abort(request.name)
            raise
        except SQLAlchemyError as e:
            self._abort(request.name)
            raise BackendFailureError(f"failed to build recommender {request.name}: {e}") from e
        except (ValueError, LookupError, ArithmeticError, MemoryError) as e:
            self._abort(request.name)
            raise BackendFailureError(f"modeling backend failed for {request.name}: {e}") from e

        logger.info(f"✓ Built recommender {request.name}: {result.cells_built} cells")
        return result

    def _build(self, request: BuildRequest, method: RecommenderMethod, token: CancellationToken) -> BuildResult:
        descriptor = FAMILY_DESCRIPTORS[method.family]

        # Catalog infrastructure
        self.catalog.ensure_infrastructure()
        self.catalog.add_recommender(
            name=request.name,
            user_table=request.user_table,
            item_table=request.item_table,
            rating_table=request.rating_table,
            user_key=request.user_key,
            item_key=request.item_key,
            rating_column=request.rating_column,
            method=method,
            context_attribute_count=len(request.context_attributes),
        )
        index_table = self.catalog.create_index_table(
            request.name, descriptor.family, request.context_attributes
        )
        self._step_done()

        # Statistics shared by every cell
        source = RatingSource(
            user_table=request.user_table,
            item_table=request.item_table,
            rating_table=request.rating_table,
            user_key=request.user_key,
            item_key=request.item_key,
            rating_column=request.rating_column,
        )
        backend = self.backend_factory(method, self.db, source, artifacts=self.artifacts)
        stats = backend.precompute() if descriptor.precomputes else None

        # One cell per distinct context combination of the user table
        allocator = CellNameAllocator(request.name)
        cells_built = 0
        ratings_consumed = 0
        for context in self.enumerator.enumerate(request.user_table, request.context_attributes):
            token.check(f"cell {allocator.sequence + 1} of {request.name}")
            ratings_consumed += self._build_cell(
                request, descriptor, backend, stats, allocator, index_table, context
            )
            cells_built += 1
            self._step_done()

        if cells_built == 0:
            logger.warning(f"No context cells found for recommender {request.name}")

        return BuildResult(
            name=request.name,
            index_table=index_table.name,
            method=method,
            cells_built=cells_built,
            ratings_consumed=ratings_consumed,
        )

    def _build_cell(
            self,
            request: BuildRequest,
            descriptor: FamilyDescriptor,
            backend: ModelingBackend,
            stats,
            allocator: CellNameAllocator,
            index_table: Table,
            context: dict[str, str]
    ) -> int:
        """Create, populate and catalog one cell; return ratings consumed."""
        names = allocator.allocate(descriptor.model_kinds)
        for name in names.table_names:
            if self.artifacts.table_exists(name):
                raise CatalogStateError(f"artifact name collision: table {name} already exists")

        model_tables = descriptor.build_models(names.model_names)
        for table in model_tables:
            self.artifacts.create_table(table)

        view = self.artifacts.create_table(
            build_view_table(names.view_name, request.user_key.lower(), request.item_key.lower())
        )
        self.artifacts.seed_view(view)

        ratings_consumed = backend.populate(model_tables, context, stats)
        self.catalog.append_cell(index_table, names, ratings_consumed, context)

        label = ", ".join(f"{k}={v}" for k, v in context.items()) or "no context"
        logger.info(f"  Cell {allocator.sequence} ({label}): {ratings_consumed} ratings")
        return ratings_consumed

    def _step_done(self) -> None:
        """Commit after a step when not building as one unit of work."""
        if not self.atomic:
            self.db.commit()

    def _abort(self, name: str) -> None:
        self.db.rollback()
        if self.atomic:
            logger.error(
                f"Build of recommender {name} failed; transaction rolled back. "
                f"Engines that commit DDL implicitly (MySQL) keep the tables created so far: "
                f"drop the recommender to remove them"
            )
        else:
            logger.error(f"Build of recommender {name} failed; drop it to remove partial artifacts")
