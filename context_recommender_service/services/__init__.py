"""Service classes"""

from .partition_enumerator import PartitionEnumerator
from .recommender_builder import RecommenderBuilder
from .recommender_destroyer import RecommenderDestroyer
from .recommender_manager import RecommenderManager
from .request_types import BuildRequest, BuildResult, DestroyReport, DestroyRequest

__all__ = [
    "BuildRequest",
    "BuildResult",
    "DestroyReport",
    "DestroyRequest",
    "PartitionEnumerator",
    "RecommenderBuilder",
    "RecommenderDestroyer",
    "RecommenderManager",
]
