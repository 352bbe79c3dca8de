"""SQLAlchemy models"""

from context_recommender_service.models.base import Base
from context_recommender_service.models.catalog import RecommenderCatalogEntry, RecommenderProperties
from context_recommender_service.models.method import RecommenderFamily, RecommenderMethod

__all__ = [
    "Base",
    "RecommenderCatalogEntry",
    "RecommenderProperties",
    "RecommenderFamily",
    "RecommenderMethod",
]
