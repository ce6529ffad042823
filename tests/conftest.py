import os

# Settings are read at import time, so pin them before anything imports config
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['CLIMATE_API_ENABLED'] = 'false'
os.environ['OPENWEATHER_API_KEY'] = ''
os.environ['ADMIN_PASSWORD'] = ''

import pytest
import requests

import tracker
from app import app as flask_app, db, AdminUser


@pytest.fixture(autouse=True)
def no_network(monkeypatch):
    def refuse(*args, **kwargs):
        raise requests.ConnectionError('network disabled in tests')
    monkeypatch.setattr(requests, 'get', refuse)


@pytest.fixture
def app():
    flask_app.config.update(TESTING=True)
    flask_app.extensions['tracker_store'] = tracker.TrackerStore()
    with flask_app.app_context():
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin(app):
    user = AdminUser(username='admin', email='admin@example.com')
    user.set_password('s3cret')
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def admin_client(client, admin):
    response = client.post('/admin/login', json={'username': 'admin', 'password': 's3cret'})
    assert response.status_code == 200
    return client
