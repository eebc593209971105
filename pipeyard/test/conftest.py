"""
Pytest configuration and fixtures for the yard workflow engine tests

Every test gets a fresh in-memory SQLite schema inside one application context.
"""
import pytest
from flask import g
from flask.testing import FlaskClient
from pipeyard import create_app
from pipeyard import db as _db
from pipeyard.buisness.yard.operator import Operator
from pipeyard.data.statuses import LoadDirection
from pipeyard.data.storage_unit import StorageUnit
from pipeyard.services.yard.workflow_service import WorkflowService


TEST_CONFIG = {
    'TESTING': True,
    'SECRET_KEY': 'test-secret-key',
    'SQLALCHEMY_DATABASE_URI': 'sqlite://',
    'RATELIMIT_ENABLED': False,
}


class OperatorClient(FlaskClient):
    """
    Test client that resolves the operator from each request's own headers.

    Requests share the session-wide application context, so the operator
    Flask-Login cached on g for the previous request is dropped first.
    """

    def open(self, *args, **kwargs):
        g.pop('_login_user', None)
        return super().open(*args, **kwargs)


@pytest.fixture(scope='session')
def app():
    """Create Flask application for testing"""
    app = create_app(TEST_CONFIG)
    app.test_client_class = OperatorClient

    with app.app_context():
        yield app


@pytest.fixture(scope='function')
def db(app):
    """Fresh schema per test"""
    _db.create_all()
    yield _db
    _db.session.remove()
    _db.drop_all()


@pytest.fixture(scope='function')
def client(app, db):
    """Create Flask test client"""
    return app.test_client()


@pytest.fixture
def admin():
    return Operator(identity='yard-admin', is_privileged=True)


@pytest.fixture
def customer():
    return Operator(identity='alice@acme', is_privileged=False, tenant='Acme')


@pytest.fixture
def outsider():
    return Operator(identity='bob@rival', is_privileged=False, tenant='Rival')


@pytest.fixture
def service(db):
    return WorkflowService()


@pytest.fixture
def make_units(db):
    """
    Factory creating committed storage units.

    Usage: u1, u2 = make_units((100, 0), (50, 0))  # (capacity, occupied)
    """
    def _make(*specs):
        units = []
        for index, (capacity, occupied) in enumerate(specs, start=1):
            unit = StorageUnit(name=f"U{index}", area='A', capacity=capacity, occupied=occupied)
            _db.session.add(unit)
            units.append(unit)
        _db.session.commit()
        return units
    return _make


@pytest.fixture
def approved_request(service, admin):
    """
    Factory submitting and approving a request.

    Returns the committed request snapshot.
    """
    def _make(units, quantity, reference='REQ-1', owner='Acme', assignments=None):
        submitted = service.submit_request(admin, reference, owner, quantity)
        assert submitted.success, submitted.error_message
        request_id = submitted.snapshot['id']
        result = service.approve_request(admin, request_id, assignments or [unit.id for unit in units])
        assert result.success, result.error_message
        return result.snapshot
    return _make


@pytest.fixture
def ready_load(service, admin):
    """
    Factory booking and approving the next load of a request.

    Returns the approved load snapshot.
    """
    def _make(request_id, direction=LoadDirection.INBOUND, planned_quantity=None):
        booked = service.book_load(admin, request_id, direction, planned_quantity=planned_quantity)
        assert booked.success, booked.error_message
        approved = service.approve_load(admin, booked.snapshot['id'])
        assert approved.success, approved.error_message
        return approved.snapshot
    return _make


@pytest.fixture
def occupied_of(db):
    """Committed occupied counter of a unit, bypassing the identity map"""
    def _read(unit_id):
        _db.session.expire_all()
        return _db.session.get(StorageUnit, unit_id).occupied
    return _read
