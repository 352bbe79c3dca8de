"""Compute rating-based similarities for collaborative filtering models."""
import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy.sparse import csr_matrix

logger = logging.getLogger(__name__)


@dataclass
class EntityStatistics:
    """
    Per-entity statistics computed once over the full rating table.

    For cosine, ``norms`` are rating-vector lengths and ``means`` is None.
    For Pearson, ``means`` are average ratings and ``norms`` are
    sqrt(sum((r - mean)^2)).
    """

    entity_ids: np.ndarray
    norms: np.ndarray
    means: np.ndarray | None = None

    def __len__(self):
        return len(self.entity_ids)


class SimilarityComputer:
    """Compute item-item or user-user similarities from ratings."""

    def __init__(self, pearson: bool = False):
        """
        Initialize similarity computer.

        Args:
            pearson: Use Pearson correlation instead of cosine similarity
        """
        self.pearson = pearson

    def compute_entity_statistics(
        self,
        ratings: pd.DataFrame,
        entity_col: str,
        rating_col: str,
        entity_ids
    ) -> EntityStatistics:
        """
        Compute norms (and means for Pearson) for every entity.

        Args:
            ratings: Unfiltered ratings with entity and rating columns
            entity_col: Column holding the entity id (item or user)
            rating_col: Column holding the rating value
            entity_ids: Every entity id of the entity table

        Returns:
            EntityStatistics aligned with entity_ids; unrated entities get 0
        """
        entity_ids = np.asarray(entity_ids)
        values = ratings[rating_col].astype(float)
        keys = ratings[entity_col]

        means = None
        if self.pearson:
            mean_by_entity = values.groupby(keys).mean()
            centered = values - keys.map(mean_by_entity)
            squares = centered ** 2
            means = mean_by_entity.reindex(entity_ids, fill_value=0.0).to_numpy(dtype=float)
        else:
            squares = values ** 2

        norms = np.sqrt(
            squares.groupby(keys).sum().reindex(entity_ids, fill_value=0.0).to_numpy(dtype=float)
        )

        logger.info(
            f"Computed {'pearson' if self.pearson else 'cosine'} statistics for {len(entity_ids)} entities"
        )
        return EntityStatistics(entity_ids=entity_ids, norms=norms, means=means)

    def compute_pair_similarities(
        self,
        ratings: pd.DataFrame,
        entity_col: str,
        other_col: str,
        rating_col: str,
        stats: EntityStatistics
    ) -> pd.DataFrame:
        """
        Compute similarities between every pair of entities co-rated in ``ratings``.

        Sums run over the given (possibly filtered) ratings, normalised by
        the global statistics. Self pairs, zero similarities and entities
        with a zero norm are left out; each pair appears in both orders.

        Args:
            ratings: Ratings of one cell
            entity_col: Column of the compared entity
            other_col: Column of the co-rating entity
            rating_col: Column holding the rating value
            stats: Precomputed statistics for the compared entities

        Returns:
            DataFrame with columns entity1, entity2, similarity
        """
        empty = pd.DataFrame({"entity1": [], "entity2": [], "similarity": []})
        if ratings.empty or len(stats) == 0:
            return empty

        index = pd.Index(stats.entity_ids)
        rows = index.get_indexer(ratings[entity_col])
        known = rows >= 0
        rows = rows[known]
        if len(rows) == 0:
            return empty

        others = ratings[other_col].to_numpy()[known]
        values = ratings[rating_col].to_numpy(dtype=float)[known]
        if self.pearson:
            values = values - stats.means[rows]

        _, cols = np.unique(others, return_inverse=True)
        matrix = csr_matrix((values, (rows, cols)), shape=(len(index), cols.max() + 1))

        products = (matrix @ matrix.T).tocoo()
        off_diagonal = products.row != products.col
        first = products.row[off_diagonal]
        second = products.col[off_diagonal]
        dots = products.data[off_diagonal]

        denominators = stats.norms[first] * stats.norms[second]
        valid = denominators > 0
        similarity = dots[valid] / denominators[valid]
        first, second = first[valid], second[valid]

        nonzero = similarity != 0
        result = pd.DataFrame({
            "entity1": stats.entity_ids[first[nonzero]],
            "entity2": stats.entity_ids[second[nonzero]],
            "similarity": similarity[nonzero],
        })

        if not result.empty:
            logger.info(
                f" Similarities: {len(result)} pairs, "
                f"range [{result['similarity'].min():.3f}, {result['similarity'].max():.3f}]"
            )
        return result
