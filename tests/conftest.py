import pytest

from servicedesk import create_app
from servicedesk.database import Base, create_all, get_session
from servicedesk.services.quote_service import create_quote
from servicedesk.services.service_record_service import create_service_record

OWNER_1 = 'owner-1'
OWNER_2 = 'owner-2'

SCENARIO_ITEMS = [
    {'description': 'DVR 16 canales', 'quantity': 1, 'unit_price': '15000', 'unit_cost': '11000'},
    {'description': 'Disco duro 2TB', 'quantity': 1, 'unit_price': '2500', 'unit_cost': '1800'},
    {'description': 'Conector BNC', 'quantity': 5, 'unit_price': '150', 'unit_cost': '40'},
]


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing (in-memory SQLite)."""
    app = create_app('config.TestConfig')
    with app.app_context():
        create_all()
    return app


@pytest.fixture(scope='function')
def session(app):
    """Database session; every table is emptied after the test."""
    session = get_session()
    yield session
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.remove()


@pytest.fixture(scope='function')
def client(app, session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def authenticated_client(client):
    """Client logged in as OWNER_1."""
    with client.session_transaction() as sess:
        sess['owner_id'] = OWNER_1
    return client


@pytest.fixture(scope='function')
def quote_factory(session):
    """Create quotes through the service; returns the new quote id."""
    def _create(owner_id=OWNER_1, **overrides):
        data = {
            'customer_name': 'Cliente de Prueba',
            'customer_phone': '5551234567',
            'items': SCENARIO_ITEMS,
            'include_tax': False,
        }
        data.update(overrides)
        return create_quote(session, owner_id, data)
    return _create


@pytest.fixture(scope='function')
def service_factory(session):
    """Create service records through the service; returns the new record id."""
    def _create(owner_id=OWNER_1, **overrides):
        data = {
            'service_type': 'PC',
            'customer_name': 'Laura Méndez',
            'customer_phone': '5559876543',
            'device_description': 'Laptop Lenovo T14',
            'problem_description': 'No enciende',
            'labor_amount': '500',
            'advance_payment': '200',
            'parts': [
                {'description': 'Cargador 65W', 'quantity': 1, 'unit_price': '800',
                 'unit_cost': '450', 'tax_percent': '0'},
            ],
        }
        data.update(overrides)
        return create_service_record(session, owner_id, data)
    return _create
