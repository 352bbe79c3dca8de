"""
Create, drop and inspect context-partitioned recommenders.
This script builds recommenders from rating tables already present in the database.
"""

import sys
from pathlib import Path

# Add parent directory to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

import argparse
import logging

from context_recommender_service.errors import RecommenderError
from context_recommender_service.services import BuildRequest, RecommenderManager

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def parse_context_attributes(value: str | None) -> list[str]:
    """
    Split a comma-separated attribute list.

    Args:
        value: e.g. "region,season" (None or empty for no context)

    Returns:
        List of attribute names
    """
    if not value:
        return []
    return [attr.strip() for attr in value.split(',') if attr.strip()]


def create_recommender(manager: RecommenderManager, args) -> int:
    """Build a recommender from parsed arguments; return the number of cells."""
    request = BuildRequest(
        name=args.name,
        user_table=args.users,
        item_table=args.items,
        rating_table=args.ratings,
        user_key=args.user_key,
        item_key=args.item_key,
        rating_column=args.rating_column,
        method=args.method,
        context_attributes=parse_context_attributes(args.context),
    )
    result = manager.create_recommender(request)

    logger.info(f"Index table: {result.index_table}")
    logger.info(f"Cells built: {result.cells_built}")
    logger.info(f"Ratings consumed: {result.ratings_consumed}")
    return result.cells_built


def drop_recommender(manager: RecommenderManager, args) -> int:
    """Drop a recommender; return the number of tables removed."""
    report = manager.drop_recommender(args.name)

    for warning in report.warnings:
        logger.warning(warning)
    logger.info(f"Tables dropped: {len(report.dropped_tables)}")
    return len(report.dropped_tables)


def list_recommenders(manager: RecommenderManager, args) -> int:
    """Log every defined recommender; return how many there are."""
    recommenders = manager.list_recommenders()

    if not recommenders:
        logger.info("No recommenders defined")
    for rec in recommenders:
        logger.info(
            f"  {rec['index_table']}: {rec['method']} over {rec['rating_table']} "
            f"({rec['context_attributes']} context attributes)"
        )
    return len(recommenders)


def list_cells(manager: RecommenderManager, args) -> int:
    """Log every cell of a recommender; return how many there are."""
    cells = manager.list_cells(args.name)

    for cell in cells:
        context = ", ".join(f"{k}={v}" for k, v in cell.context.items()) or "no context"
        logger.info(
            f"  Cell {cell.system_id} ({context}): models={', '.join(cell.artifacts.model_names)} "
            f"view={cell.artifacts.view_name} ratings={cell.rating_total}"
        )
    return len(cells)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Manage context-partitioned recommenders'
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    create = subparsers.add_parser('create', help='Create a recommender')
    create.add_argument('name', help='Recommender name')
    create.add_argument('--users', required=True, help='User table')
    create.add_argument('--items', required=True, help='Item table')
    create.add_argument('--ratings', required=True, help='Rating table')
    create.add_argument('--user-key', required=True, help='User key column')
    create.add_argument('--item-key', required=True, help='Item key column')
    create.add_argument('--rating-column', required=True, help='Rating value column')
    create.add_argument(
        '--method',
        default='item-cosine',
        help='item-cosine, item-pearson, user-cosine, user-pearson or svd (default: item-cosine)'
    )
    create.add_argument(
        '--context',
        default=None,
        help='Comma-separated context attributes of the user table'
    )
    create.set_defaults(handler=create_recommender)

    drop = subparsers.add_parser('drop', help='Drop a recommender')
    drop.add_argument('name', help='Recommender name')
    drop.set_defaults(handler=drop_recommender)

    listing = subparsers.add_parser('list', help='List recommenders')
    listing.set_defaults(handler=list_recommenders)

    cells = subparsers.add_parser('cells', help='List the cells of a recommender')
    cells.add_argument('name', help='Recommender name')
    cells.set_defaults(handler=list_cells)

    return parser


def main(argv: list[str] | None = None):
    """Main execution function."""
    args = build_parser().parse_args(argv)

    logger.info("="*70)
    logger.info(f"RECOMMENDER {args.command.upper()}")
    logger.info("="*70)

    try:
        manager = RecommenderManager()
        args.handler(manager, args)
        logger.info("✓ Done")

    except RecommenderError as e:
        logger.error(f"Error ({e.kind.value}): {e.message}", exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
