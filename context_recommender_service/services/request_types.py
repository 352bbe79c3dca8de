"""Request and result types at the recommender manager boundary."""
from dataclasses import dataclass, field

from context_recommender_service.models import RecommenderMethod


@dataclass
class BuildRequest:
    """A request to create a recommender."""

    name: str
    user_table: str
    item_table: str
    rating_table: str
    user_key: str
    item_key: str
    rating_column: str
    method: RecommenderMethod | str
    context_attributes: list[str] = field(default_factory=list)

    @property
    def resolved_method(self) -> RecommenderMethod:
        if isinstance(self.method, RecommenderMethod):
            return self.method
        return RecommenderMethod.parse(self.method)


@dataclass
class DestroyRequest:
    """A request to drop a recommender (name is case-insensitive)."""

    name: str


@dataclass
class BuildResult:
    """Outcome of a successful build."""

    name: str
    index_table: str
    method: RecommenderMethod
    cells_built: int
    ratings_consumed: int


@dataclass
class DestroyReport:
    """Outcome of a successful destroy."""

    name: str
    index_table: str
    cells_found: int
    dropped_tables: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
