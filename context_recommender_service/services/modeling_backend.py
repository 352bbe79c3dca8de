"""Modeling backends that populate a cell's model tables from ratings."""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import pandas as pd
from sqlalchemy import String, Table, cast, select
from sqlalchemy.orm import Session

from context_recommender_service.config import get_model_batch_size, get_svd_features
from context_recommender_service.ml.similarity_computer import EntityStatistics, SimilarityComputer
from context_recommender_service.ml.svd_factorizer import SVDFactorizer
from context_recommender_service.models import RecommenderFamily, RecommenderMethod
from context_recommender_service.repos import ArtifactRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RatingSource:
    """Where a recommender's ratings come from."""

    user_table: str
    item_table: str
    rating_table: str
    user_key: str
    item_key: str
    rating_column: str


class ModelingBackend(ABC):
    """
    Uniform contract for filling one cell's model tables.

    ``precompute`` runs once per recommender over the whole rating table;
    ``populate`` runs once per cell and returns the number of ratings used.
    """

    def __init__(
            self,
            db: Session,
            source: RatingSource,
            artifacts: ArtifactRepository | None = None,
            batch_size: int | None = None
    ):
        self.db = db
        self.source = source
        self.artifacts = artifacts or ArtifactRepository(db)
        self.batch_size = batch_size or get_model_batch_size()

    def precompute(self) -> EntityStatistics | None:
        """Statistics shared by every cell (None when the family needs none)."""
        return None

    @abstractmethod
    def populate(
            self,
            model_tables: tuple[Table, ...],
            context_filter: dict[str, str],
            stats: EntityStatistics | None = None
    ) -> int:
        """
        Write one cell's model rows.

        Args:
            model_tables: The cell's model table(s)
            context_filter: Attribute values of the cell (empty for no context)
            stats: Result of ``precompute``

        Returns:
            Number of ratings that contributed to the model
        """

    def load_ratings(self, context_filter: dict[str, str] | None = None) -> pd.DataFrame:
        """
        Load the ratings of one cell.

        Ratings are restricted to users of the user table and items of the
        item table; the context filter applies to the user table's
        attributes, compared as text.

        Returns:
            DataFrame with columns user_id, item_id, rating
        """
        src = self.source
        col = self.artifacts.column
        ratings = self.artifacts.reflect_table(src.rating_table)
        stmt_from = ratings

        users = ratings
        if src.user_table != src.rating_table:
            users = self.artifacts.reflect_table(src.user_table)
            stmt_from = stmt_from.join(users, col(users, src.user_key) == col(ratings, src.user_key))

        if src.item_table not in (src.rating_table, src.user_table):
            items = self.artifacts.reflect_table(src.item_table)
            stmt_from = stmt_from.join(items, col(items, src.item_key) == col(ratings, src.item_key))

        stmt = self._rating_columns(ratings).select_from(stmt_from)

        for attr, value in (context_filter or {}).items():
            stmt = stmt.where(cast(col(users, attr), String) == value)

        return pd.read_sql(stmt, self.db.connection())

    def load_all_ratings(self) -> pd.DataFrame:
        """Load the whole rating table, ignoring context."""
        ratings = self.artifacts.reflect_table(self.source.rating_table)
        return pd.read_sql(self._rating_columns(ratings), self.db.connection())

    def load_entity_ids(self, table_name: str, key: str) -> list:
        """Distinct ids of an entity table."""
        table = self.artifacts.reflect_table(table_name)
        key_col = self.artifacts.column(table, key)
        cursor = self.artifacts.open_cursor(select(key_col).distinct().order_by(key_col))
        try:
            return [row[0] for row in cursor]
        finally:
            self.artifacts.close_cursor(cursor)

    def _rating_columns(self, ratings: Table):
        """Select the (user_id, item_id, rating) columns of the rating table."""
        src = self.source
        col = self.artifacts.column
        return select(
            col(ratings, src.user_key).label("user_id"),
            col(ratings, src.item_key).label("item_id"),
            col(ratings, src.rating_column).label("rating"),
        )


class CollaborativeFilteringBackend(ModelingBackend):
    """Item-item or user-user cosine / Pearson similarity models."""

    def __init__(
            self,
            db: Session,
            source: RatingSource,
            family: RecommenderFamily,
            pearson: bool = False,
            artifacts: ArtifactRepository | None = None,
            batch_size: int | None = None
    ):
        super().__init__(db, source, artifacts=artifacts, batch_size=batch_size)
        if family == RecommenderFamily.SVD:
            raise ValueError("collaborative filtering backend needs an item or user family")
        self.family = family
        self.computer = SimilarityComputer(pearson=pearson)

        if family == RecommenderFamily.ITEM_CF:
            self.entity_col, self.other_col = "item_id", "user_id"
        else:
            self.entity_col, self.other_col = "user_id", "item_id"

    def precompute(self) -> EntityStatistics:
        src = self.source
        if self.family == RecommenderFamily.ITEM_CF:
            entity_ids = self.load_entity_ids(src.item_table, src.item_key)
        else:
            entity_ids = self.load_entity_ids(src.user_table, src.user_key)

        ratings = self.load_all_ratings()
        return self.computer.compute_entity_statistics(ratings, self.entity_col, "rating", entity_ids)

    def populate(
            self,
            model_tables: tuple[Table, ...],
            context_filter: dict[str, str],
            stats: EntityStatistics | None = None
    ) -> int:
        if stats is None:
            stats = self.precompute()

        (model,) = model_tables
        first_col, second_col, similarity_col = (col.name for col in model.columns)

        ratings = self.load_ratings(context_filter)
        pairs = self.computer.compute_pair_similarities(
            ratings, self.entity_col, self.other_col, "rating", stats
        )

        rows = (
            {first_col: int(a), second_col: int(b), similarity_col: float(s)}
            for a, b, s in zip(pairs["entity1"], pairs["entity2"], pairs["similarity"])
        )
        count = self.artifacts.insert_rows(model, rows, batch_size=self.batch_size)

        logger.info(f"✓ Stored {count} similarities in {model.name} from {len(ratings)} ratings")
        return len(ratings)


class SVDBackend(ModelingBackend):
    """User and item latent factor models."""

    def __init__(
            self,
            db: Session,
            source: RatingSource,
            n_features: int | None = None,
            artifacts: ArtifactRepository | None = None,
            batch_size: int | None = None
    ):
        super().__init__(db, source, artifacts=artifacts, batch_size=batch_size)
        self.factorizer = SVDFactorizer(n_features=n_features or get_svd_features())

    def populate(
            self,
            model_tables: tuple[Table, ...],
            context_filter: dict[str, str],
            stats: EntityStatistics | None = None
    ) -> int:
        user_model, item_model = model_tables

        ratings = self.load_ratings(context_filter)
        user_factors, item_factors = self.factorizer.factorize(ratings, "user_id", "item_id", "rating")

        for table, factors in ((user_model, user_factors), (item_model, item_factors)):
            id_col, feature_col, value_col = (col.name for col in table.columns)
            rows = (
                {id_col: int(entity), feature_col: int(feature), value_col: float(value)}
                for entity, feature, value in zip(
                    factors["entity_id"], factors["feature"], factors["value"]
                )
            )
            count = self.artifacts.insert_rows(table, rows, batch_size=self.batch_size)
            logger.info(f"✓ Stored {count} factor values in {table.name}")

        return len(ratings)


def create_backend(
        method: RecommenderMethod,
        db: Session,
        source: RatingSource,
        artifacts: ArtifactRepository | None = None
) -> ModelingBackend:
    """Select the modeling backend for a recommendation method."""
    if method.family == RecommenderFamily.SVD:
        return SVDBackend(db, source, artifacts=artifacts)
    return CollaborativeFilteringBackend(
        db, source, method.family, pearson=method.uses_pearson, artifacts=artifacts
    )
