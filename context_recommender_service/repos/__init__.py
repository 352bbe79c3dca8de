"""Repository classes"""

from context_recommender_service.repos.artifact_repository import ArtifactRepository
from context_recommender_service.repos.catalog_repository import CatalogRepository

__all__ = [
    "ArtifactRepository",
    "CatalogRepository",
]
