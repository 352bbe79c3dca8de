"""Recommendation methods and the algorithm family each one belongs to."""

from enum import Enum


class RecommenderFamily(str, Enum):
    """Algorithmic category; decides model schema and backend call shape."""

    ITEM_CF = "item_cf"
    USER_CF = "user_cf"
    SVD = "svd"


class RecommenderMethod(str, Enum):
    """Recommendation method named in a build request."""

    ITEM_COSINE = "item-cosine"
    ITEM_PEARSON = "item-pearson"
    USER_COSINE = "user-cosine"
    USER_PEARSON = "user-pearson"
    SVD = "svd"

    @property
    def family(self) -> RecommenderFamily:
        if self in (RecommenderMethod.ITEM_COSINE, RecommenderMethod.ITEM_PEARSON):
            return RecommenderFamily.ITEM_CF
        if self in (RecommenderMethod.USER_COSINE, RecommenderMethod.USER_PEARSON):
            return RecommenderFamily.USER_CF
        return RecommenderFamily.SVD

    @property
    def uses_pearson(self) -> bool:
        return self in (RecommenderMethod.ITEM_PEARSON, RecommenderMethod.USER_PEARSON)

    @classmethod
    def parse(cls, identifier: str) -> "RecommenderMethod":
        """
        Resolve a method identifier, case-insensitively.

        Accepts the canonical names (``item-cosine``) and the legacy
        spellings (``itemcoscf``).

        Raises:
            ValueError: If the identifier names no known method
        """
        key = identifier.strip().lower()
        if key in _LEGACY_NAMES:
            return _LEGACY_NAMES[key]
        return cls(key)


_LEGACY_NAMES = {
    "itemcoscf": RecommenderMethod.ITEM_COSINE,
    "itempearcf": RecommenderMethod.ITEM_PEARSON,
    "usercoscf": RecommenderMethod.USER_COSINE,
    "userpearcf": RecommenderMethod.USER_PEARSON,
}
