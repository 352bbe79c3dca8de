"""Per-recommender tables whose names and columns are only known at build time."""

from sqlalchemy import Column, DateTime, Float, Integer, MetaData, PrimaryKeyConstraint, String, Table

from context_recommender_service.models.method import RecommenderFamily

# Placeholder row seeded into every view table
VIEW_SENTINEL = (-1, -1, -1.0)

# Bookkeeping columns of an index table, shared by every family
INDEX_COUNTER_COLUMNS = (
    "view_name",
    "update_counter",
    "rating_total",
    "query_counter",
    "update_rate",
    "query_rate",
    "created_at",
)


def index_table_name(recommender_name: str) -> str:
    """Name of the index table that identifies a recommender."""
    return f"{recommender_name.lower()}index"


def model_name_columns(family: RecommenderFamily) -> tuple[str, ...]:
    """Index columns holding the model table name(s) of a cell."""
    if family == RecommenderFamily.SVD:
        return ("user_model_name", "item_model_name")
    return ("model_name",)


def reserved_index_columns() -> set[str]:
    """Column names a context attribute may not take."""
    reserved = {"system_id", *INDEX_COUNTER_COLUMNS}
    for family in RecommenderFamily:
        reserved.update(model_name_columns(family))
    return reserved


def build_index_table(
        name: str,
        family: RecommenderFamily,
        context_attributes: list[str]
) -> Table:
    """
    Describe a recommender's index table.

    Args:
        name: Index table name
        family: Algorithm family (SVD cells carry two model names)
        context_attributes: One non-null text column per attribute, in order

    Returns:
        Unbound Table object
    """
    columns = [Column("system_id", Integer, primary_key=True, autoincrement=True)]
    columns += [Column(col, String(255), nullable=False) for col in model_name_columns(family)]
    columns += [
        Column("view_name", String(255), nullable=False),
        Column("update_counter", Integer, nullable=False),
        Column("rating_total", Integer, nullable=False),
        Column("query_counter", Integer, nullable=False),
        Column("update_rate", Float, nullable=False),
        Column("query_rate", Float, nullable=False),
        Column("created_at", DateTime, nullable=False),
    ]
    columns += [Column(attr, String(255), nullable=False) for attr in context_attributes]

    return Table(name, MetaData(), *columns)


def build_similarity_table(name: str, family: RecommenderFamily) -> Table:
    """Pairwise similarity model: (item1, item2) or (user1, user2)."""
    prefix = "item" if family == RecommenderFamily.ITEM_CF else "user"
    return Table(
        name,
        MetaData(),
        Column(f"{prefix}1", Integer, nullable=False),
        Column(f"{prefix}2", Integer, nullable=False),
        Column("similarity", Float, nullable=False),
    )


def build_factor_table(name: str, entity: str) -> Table:
    """Latent factor model: one row per (entity id, feature) pair."""
    return Table(
        name,
        MetaData(),
        Column(f"{entity}_id", Integer, nullable=False),
        Column("feature", Integer, nullable=False),
        Column("value", Float, nullable=False),
    )


def build_view_table(name: str, user_key: str, item_key: str) -> Table:
    """Recommendation cache keyed on (user, item)."""
    return Table(
        name,
        MetaData(),
        Column(user_key, Integer, nullable=False),
        Column(item_key, Integer, nullable=False),
        Column("rec_score", Float, nullable=False),
        PrimaryKeyConstraint(user_key, item_key),
    )
