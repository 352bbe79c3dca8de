"""Latent factor decomposition of a user x item rating matrix."""
import logging

import numpy as np
import pandas as pd
from scipy.sparse import csr_matrix
from sklearn.decomposition import TruncatedSVD

logger = logging.getLogger(__name__)


class SVDFactorizer:
    """Factorize ratings into user and item factor matrices."""

    def __init__(self, n_features: int = 50, random_state: int = 42):
        """
        Initialize factorizer.

        Args:
            n_features: Maximum number of latent factors
            random_state: Seed for the randomized solver
        """
        self.n_features = n_features
        self.random_state = random_state

    def factorize(
        self,
        ratings: pd.DataFrame,
        user_col: str,
        item_col: str,
        rating_col: str
    ) -> tuple[pd.DataFrame, pd.DataFrame]:
        """
        Factorize the rating matrix as U sqrt(S) and V sqrt(S).

        Args:
            ratings: Ratings to factorize
            user_col: Column holding user ids
            item_col: Column holding item ids
            rating_col: Column holding rating values

        Returns:
            Tuple of (user_factors, item_factors) in long form with
            columns entity_id, feature, value
        """
        if ratings.empty:
            empty = pd.DataFrame({"entity_id": [], "feature": [], "value": []})
            return empty, empty.copy()

        users, user_idx = np.unique(ratings[user_col].to_numpy(), return_inverse=True)
        items, item_idx = np.unique(ratings[item_col].to_numpy(), return_inverse=True)
        matrix = csr_matrix(
            (ratings[rating_col].to_numpy(dtype=float), (user_idx, item_idx)),
            shape=(len(users), len(items)),
        )

        k = min(self.n_features, *matrix.shape)
        logger.info(f"Factorizing {matrix.shape[0]} x {matrix.shape[1]} matrix with {k} features")

        if k < min(matrix.shape):
            svd = TruncatedSVD(n_components=k, algorithm="randomized", random_state=self.random_state)
            scaled_users = svd.fit_transform(matrix)
            sigma = svd.singular_values_
            u = scaled_users / np.where(sigma > 0, sigma, 1.0)
            vt = svd.components_
        else:
            # Full decomposition when every factor is kept
            u, sigma, vt = np.linalg.svd(matrix.toarray(), full_matrices=False)
            u, sigma, vt = u[:, :k], sigma[:k], vt[:k]

        root = np.sqrt(sigma)
        user_factors = self._to_long(users, u * root)
        item_factors = self._to_long(items, vt.T * root)

        logger.info(f"✓ Computed {len(users)} user and {len(items)} item factor vectors")
        return user_factors, item_factors

    def _to_long(self, ids: np.ndarray, factors: np.ndarray) -> pd.DataFrame:
        """Flatten an (entities x features) matrix into one row per entry."""
        n_entities, n_features = factors.shape
        return pd.DataFrame({
            "entity_id": np.repeat(ids, n_features),
            "feature": np.tile(np.arange(n_features), n_entities),
            "value": factors.ravel(),
        })
