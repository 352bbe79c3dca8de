"""Checks a build request before any artifact is created."""
import logging
import re

from sqlalchemy.orm import Session

from context_recommender_service.errors import CatalogStateError, RequestValidationError
from context_recommender_service.models import RecommenderMethod
from context_recommender_service.models.schema import reserved_index_columns
from context_recommender_service.repos import ArtifactRepository, CatalogRepository
from context_recommender_service.services.request_types import BuildRequest

logger = logging.getLogger(__name__)

IDENTIFIER_PATTERN = re.compile(r"^[a-z_][a-z0-9_]*$")

# Leaves room for "_usermodel_<nonce>_<sequence>" within a 63 character identifier
MAX_RECOMMENDER_NAME_LENGTH = 30


def validate_build_request(db: Session, request: BuildRequest) -> RecommenderMethod:
    """
    Validate a build request against the catalog and the source tables.

    The request name and context attributes are case-folded in place; key
    and rating columns take the rating table's spelling.

    Args:
        db: Database session
        request: Request to validate

    Returns:
        The resolved recommendation method

    Raises:
        RequestValidationError: If the request is malformed or names missing objects
        CatalogStateError: If a recommender with this name already exists
    """
    request.name = request.name.strip().lower()
    request.context_attributes = [attr.strip().lower() for attr in request.context_attributes]

    if not IDENTIFIER_PATTERN.match(request.name):
        raise RequestValidationError(f"invalid recommender name '{request.name}'")
    if len(request.name) > MAX_RECOMMENDER_NAME_LENGTH:
        raise RequestValidationError(
            f"recommender name '{request.name}' is longer than {MAX_RECOMMENDER_NAME_LENGTH} characters"
        )

    try:
        method = request.resolved_method
    except ValueError:
        raise RequestValidationError(f"recommendation method '{request.method}' not recognized") from None

    artifacts = ArtifactRepository(db)
    catalog = CatalogRepository(db, artifacts)

    if catalog.recommender_exists(request.name):
        raise CatalogStateError(f"recommender {request.name} already exists")

    table_columns = {}
    for table in (request.user_table, request.item_table, request.rating_table):
        if not artifacts.table_exists(table):
            raise RequestValidationError(f"relation {table} does not exist")
        table_columns[table] = {col.lower(): col for col in artifacts.table_columns(table)}

    required = [
        (request.rating_table, request.user_key),
        (request.rating_table, request.item_key),
        (request.rating_table, request.rating_column),
        (request.user_table, request.user_key),
        (request.item_table, request.item_key),
    ]
    for table, column in required:
        if column.lower() not in table_columns[table]:
            raise RequestValidationError(f"column {column} does not exist in relation {table}")

    # Record the rating table's own spelling of each column
    rating_columns = table_columns[request.rating_table]
    request.user_key = rating_columns[request.user_key.lower()]
    request.item_key = rating_columns[request.item_key.lower()]
    request.rating_column = rating_columns[request.rating_column.lower()]

    seen = set()
    reserved = reserved_index_columns()
    for attr in request.context_attributes:
        if attr not in table_columns[request.user_table]:
            raise RequestValidationError(
                f"context attribute {attr} does not exist in relation {request.user_table}"
            )
        if attr in seen:
            raise RequestValidationError(f"context attribute {attr} is listed more than once")
        if attr in reserved:
            raise RequestValidationError(f"context attribute {attr} collides with an index column")
        seen.add(attr)

    logger.debug(f"Validated build request for {request.name}")
    return method
