"""
Shared fixtures: a fresh SQLite database per test with the full schema,
foreign keys enforced and updated_at triggers installed.
"""

import itertools

import pytest

from smrt.db.models import Category, Product, ShippingAddress, User
from smrt.db.repository import insert_returning
from smrt.db.session import create_engine_for, create_schema, make_session_factory

_counter = itertools.count(1)


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'smrt.db'}"


@pytest.fixture
def engine(database_url):
    engine = create_engine_for(database_url)
    create_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def session(session_factory):
    with session_factory() as session:
        yield session


# ============================================================================
# Row factories
# ============================================================================


@pytest.fixture
def make_user(session):
    def _make(**values):
        n = next(_counter)
        values.setdefault("clerk_user_id", f"user_{n}")
        values.setdefault("name", f"User {n}")
        values.setdefault("email", f"user{n}@example.com")
        return insert_returning(session, User, **values)

    return _make


@pytest.fixture
def make_category(session):
    def _make(name="Computers"):
        return insert_returning(session, Category, name=name)

    return _make


@pytest.fixture
def make_product(session, make_category):
    def _make(category=None, **values):
        n = next(_counter)
        category = category or make_category()
        values.setdefault("name", f"Product {n}")
        values.setdefault("slug", f"product-{n}")
        values.setdefault("price_in_cents", 1999)
        return insert_returning(session, Product, category_id=category.id, **values)

    return _make


@pytest.fixture
def make_address(session):
    def _make(user, **values):
        values.setdefault("address1", "1 Main St")
        values.setdefault("city", "Springfield")
        values.setdefault("country", "US")
        return insert_returning(session, ShippingAddress, user_id=user.id, **values)

    return _make
