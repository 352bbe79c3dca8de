"""Shared test fixtures and configuration for pytest."""
import pytest
from unittest.mock import Mock
from typing import Dict, List

import pandas as pd
from sqlalchemy import Column, Float, Integer, MetaData, String, Table
from sqlalchemy.orm import sessionmaker

from context_recommender_service.models.database import create_database_engine
from context_recommender_service.services.modeling_backend import ModelingBackend, RatingSource
from context_recommender_service.services.request_types import BuildRequest


# ===== Sample Data =====

SAMPLE_USERS = [
    {'uid': 1, 'region': 'north', 'age_group': 'young', 'age': 21},
    {'uid': 2, 'region': 'north', 'age_group': 'old', 'age': 64},
    {'uid': 3, 'region': 'south', 'age_group': 'young', 'age': 21},
    {'uid': 4, 'region': 'south', 'age_group': 'old', 'age': 64},
    {'uid': 5, 'region': 'east', 'age_group': 'young', 'age': 21},
    {'uid': 6, 'region': 'east', 'age_group': 'old', 'age': 64},
]

SAMPLE_ITEMS = [
    {'iid': 10, 'title': 'Breaking Bad'},
    {'iid': 20, 'title': 'Better Call Saul'},
    {'iid': 30, 'title': 'The Office'},
]

SAMPLE_RATINGS = [
    {'uid': 1, 'iid': 10, 'rating': 5.0},
    {'uid': 1, 'iid': 20, 'rating': 3.0},
    {'uid': 2, 'iid': 10, 'rating': 4.0},
    {'uid': 2, 'iid': 30, 'rating': 2.0},
    {'uid': 3, 'iid': 20, 'rating': 4.0},
    {'uid': 3, 'iid': 30, 'rating': 5.0},
    {'uid': 4, 'iid': 10, 'rating': 1.0},
    {'uid': 4, 'iid': 20, 'rating': 2.0},
    {'uid': 4, 'iid': 30, 'rating': 3.0},
    {'uid': 5, 'iid': 10, 'rating': 2.0},
    {'uid': 6, 'iid': 30, 'rating': 4.0},
]


# ===== Database Fixtures =====

@pytest.fixture(scope="function")
def test_db_engine():
    """Create an in-memory SQLite database engine shared by every session."""
    engine = create_database_engine("sqlite://")
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_db_engine):
    """Session factory bound to the test engine."""
    return sessionmaker(bind=test_db_engine)


@pytest.fixture(scope="function")
def test_db_session(session_factory):
    """Create a database session for testing."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(scope="function")
def source_tables(test_db_engine) -> Dict[str, Table]:
    """Create and fill the users, items and ratings tables."""
    metadata = MetaData()
    users = Table(
        'users', metadata,
        Column('uid', Integer, primary_key=True),
        Column('region', String(50), nullable=True),
        Column('age_group', String(50), nullable=True),
        Column('age', Integer, nullable=True),
    )
    items = Table(
        'items', metadata,
        Column('iid', Integer, primary_key=True),
        Column('title', String(255)),
    )
    ratings = Table(
        'ratings', metadata,
        Column('uid', Integer, nullable=False),
        Column('iid', Integer, nullable=False),
        Column('rating', Float, nullable=False),
    )
    metadata.create_all(test_db_engine)

    with test_db_engine.begin() as conn:
        conn.execute(users.insert(), SAMPLE_USERS)
        conn.execute(items.insert(), SAMPLE_ITEMS)
        conn.execute(ratings.insert(), SAMPLE_RATINGS)

    return {'users': users, 'items': items, 'ratings': ratings}


@pytest.fixture(scope="function")
def empty_user_table(test_db_engine, source_tables) -> Table:
    """A user table with the same columns as users but no rows."""
    table = Table(
        'nobody', MetaData(),
        Column('uid', Integer, primary_key=True),
        Column('region', String(50), nullable=True),
    )
    table.create(test_db_engine)
    return table


@pytest.fixture(scope="function")
def mixed_case_tables(test_db_engine) -> Dict[str, Table]:
    """The sample tables under mixed-case column names."""
    metadata = MetaData()
    users = Table(
        'musers', metadata,
        Column('UID', Integer, primary_key=True),
        Column('Region', String(50), nullable=True),
    )
    items = Table(
        'mitems', metadata,
        Column('IID', Integer, primary_key=True),
    )
    ratings = Table(
        'mratings', metadata,
        Column('UID', Integer, nullable=False),
        Column('IID', Integer, nullable=False),
        Column('Rating', Float, nullable=False),
    )
    metadata.create_all(test_db_engine)

    with test_db_engine.begin() as conn:
        conn.execute(users.insert(), [{'UID': u['uid'], 'Region': u['region']} for u in SAMPLE_USERS])
        conn.execute(items.insert(), [{'IID': i['iid']} for i in SAMPLE_ITEMS])
        conn.execute(ratings.insert(), [
            {'UID': r['uid'], 'IID': r['iid'], 'Rating': r['rating']} for r in SAMPLE_RATINGS
        ])

    return {'users': users, 'items': items, 'ratings': ratings}


# ===== Request Fixtures =====

@pytest.fixture
def make_build_request():
    """Factory for build requests over the sample tables."""
    def _make(name: str = 'foo', method: str = 'item-cosine', context: List[str] | None = None, **overrides):
        fields = dict(
            name=name,
            user_table='users',
            item_table='items',
            rating_table='ratings',
            user_key='uid',
            item_key='iid',
            rating_column='rating',
            method=method,
            context_attributes=list(context or []),
        )
        fields.update(overrides)
        return BuildRequest(**fields)
    return _make


@pytest.fixture
def rating_source() -> RatingSource:
    """Rating source over the sample tables."""
    return RatingSource(
        user_table='users',
        item_table='items',
        rating_table='ratings',
        user_key='uid',
        item_key='iid',
        rating_column='rating',
    )


# ===== Mock Fixtures =====

@pytest.fixture
def mock_backend():
    """Mock modeling backend that writes nothing and reports 0 ratings."""
    backend = Mock(spec=ModelingBackend)
    backend.precompute.return_value = None
    backend.populate.return_value = 0
    return backend


@pytest.fixture
def mock_backend_factory(mock_backend):
    """Backend factory returning mock_backend."""
    return Mock(return_value=mock_backend)


# ===== Repository Fixtures =====

@pytest.fixture
def artifact_repository(test_db_session):
    """Create ArtifactRepository with test database session."""
    from context_recommender_service.repos import ArtifactRepository
    return ArtifactRepository(test_db_session)


@pytest.fixture
def catalog_repository(test_db_session, artifact_repository):
    """Create CatalogRepository with test database session."""
    from context_recommender_service.repos import CatalogRepository
    return CatalogRepository(test_db_session, artifact_repository)


# ===== Service Fixtures =====

@pytest.fixture
def manager(session_factory):
    """RecommenderManager over the test database, building atomically."""
    from context_recommender_service.services import RecommenderManager
    return RecommenderManager(session_factory=session_factory, atomic=True)


@pytest.fixture
def table_exists(test_db_engine):
    """Check if a table exists in the test database."""
    from sqlalchemy import inspect

    def _exists(name: str) -> bool:
        return inspect(test_db_engine).has_table(name)
    return _exists


@pytest.fixture
def fetch_rows(test_db_engine):
    """Read every row of a table as dicts."""
    def _fetch(name: str) -> List[Dict]:
        table = Table(name, MetaData(), autoload_with=test_db_engine)
        with test_db_engine.connect() as conn:
            return [dict(row) for row in conn.execute(table.select()).mappings()]
    return _fetch


# ===== Configuration Fixtures =====

@pytest.fixture
def mock_config(monkeypatch):
    """Mock configuration values."""
    monkeypatch.setenv('DATABASE_URL', 'sqlite:///:memory:')
    monkeypatch.setenv('RECOMMENDER_UPDATE_THRESHOLD', '0.5')
    monkeypatch.setenv('RECOMMENDER_TAIL_LENGTH', '0')
    monkeypatch.setenv('RECOMMENDER_VERBOSE_QUERIES', 'true')
    monkeypatch.setenv('RECOMMENDER_SVD_FEATURES', '50')
    monkeypatch.setenv('RECOMMENDER_ATOMIC_BUILDS', 'true')


# ===== Script Fixtures =====

@pytest.fixture
def mock_sys_argv(monkeypatch):
    """Mock sys.argv for script testing."""
    def _mock_argv(args):
        monkeypatch.setattr('sys.argv', args)
    return _mock_argv


# ===== Frame Fixtures =====

@pytest.fixture
def ratings_frame() -> pd.DataFrame:
    """Sample ratings with the column names the modeling backends use."""
    return pd.DataFrame(SAMPLE_RATINGS).rename(columns={'uid': 'user_id', 'iid': 'item_id'})


@pytest.fixture
def raw_ratings_frame() -> pd.DataFrame:
    """Sample ratings with the source table's column names."""
    return pd.DataFrame(SAMPLE_RATINGS)
