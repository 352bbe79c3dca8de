"""Catalog tables shared by every recommender."""

from datetime import UTC, datetime

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String

from context_recommender_service.models.base import Base


class RecommenderCatalogEntry(Base):
    """One row per defined recommender.

    The recommender is identified by the name of its index table.
    """

    __tablename__ = "recommender_catalog"

    recommender_id = Column(Integer, primary_key=True, autoincrement=True)
    index_table_name = Column(String(255), nullable=False, unique=True)

    # Source relations
    user_table = Column(String(255), nullable=False)
    item_table = Column(String(255), nullable=False)
    rating_table = Column(String(255), nullable=False)
    user_key = Column(String(255), nullable=False)
    item_key = Column(String(255), nullable=False)
    rating_column = Column(String(255), nullable=False)

    method = Column(String(50), nullable=False)
    context_attribute_count = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    def __repr__(self):
        return (
            f"<RecommenderCatalogEntry(index_table_name='{self.index_table_name}', "
            f"method='{self.method}')>"
        )


class RecommenderProperties(Base):
    """Singleton row of global recommender settings."""

    __tablename__ = "recommender_properties"

    properties_id = Column(Integer, primary_key=True, autoincrement=True)
    update_threshold = Column(Float, nullable=False)
    tail_length = Column(Integer, nullable=False)
    verbose_queries = Column(Boolean, nullable=False)

    def __repr__(self):
        return (
            f"<RecommenderProperties(update_threshold={self.update_threshold}, "
            f"tail_length={self.tail_length}, verbose_queries={self.verbose_queries})>"
        )
