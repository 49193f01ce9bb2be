"""
Pytest fixtures for jewelry POS backend tests.

Provides an in-memory database app, per-test table cleanup, and catalog /
invoice factories.
"""

import pytest

from jewelry_pos import create_app
from jewelry_pos.extensions import db
from jewelry_pos.services.catalog_service import create_item


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'INVOICE_NUMBER_PREFIX': 'INV',
        'INVOICE_NUMBER_PAD': 6,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_item(db_session):
    """Factory: make_item(stock=3, name="Ring") -> Item"""
    counter = {"n": 0}

    def _make(*, stock=5, name=None, category="ring", weight_grams=4.5, materials=None):
        counter["n"] += 1
        return create_item(
            name=name or f"Test Ring {counter['n']}",
            category=category,
            weight_grams=weight_grams,
            stock=stock,
            materials=materials if materials is not None else ["22K Gold"],
        )

    return _make
