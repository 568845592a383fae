import os

# Must be set before ``app`` is imported anywhere in the test session
os.environ['FINANCE_DB_URI'] = 'sqlite://'
os.environ.pop('CATEGORY_KEYWORDS_FILE', None)

import pytest


@pytest.fixture
def client():
    from app import app, db, init_database
    app.config['TESTING'] = True
    with app.app_context():
        db.create_all()
        init_database()
        yield app.test_client()
        db.session.remove()
        db.drop_all()
