"""In-memory views of a recommender cell."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class CellArtifacts:
    """Tables owned by one cell."""

    model_names: tuple[str, ...]
    view_name: str

    @property
    def table_names(self) -> tuple[str, ...]:
        """Every table of the cell, models first."""
        return (*self.model_names, self.view_name)


@dataclass
class CellRecord:
    """One index row read back from the catalog."""

    system_id: int
    artifacts: CellArtifacts
    rating_total: int
    context: dict[str, str] = field(default_factory=dict)
