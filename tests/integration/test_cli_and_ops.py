"""
Integration tests for CLI commands and operational endpoints.
"""

from datetime import date

from sqlalchemy.exc import OperationalError

from servicedesk.models import Quote, ServiceRecord
from servicedesk.services.sequence_service import get_allocator


class TestSyncSequences:

    def test_sync_from_legacy_folios(self, app, session):
        session.add_all([
            Quote(owner_id='owner-1', folio='COT-2025-250', folio_year=2025, folio_number=250,
                  customer_name='Cliente', issued_on=date(2025, 2, 1)),
            Quote(owner_id='owner-1', folio='COT-2025-180', folio_year=2025, folio_number=180,
                  customer_name='Cliente', issued_on=date(2025, 2, 1)),
            Quote(owner_id='owner-2', folio='COT-2025-900', folio_year=2025, folio_number=900,
                  customer_name='Otro', issued_on=date(2025, 2, 1)),
            ServiceRecord(owner_id='owner-1', service_type='PC', order_folio='ORD-2025-120',
                          order_year=2025, order_number=120, customer_name='Cliente',
                          received_on=date(2025, 2, 1)),
        ])
        session.commit()

        result = app.test_cli_runner().invoke(args=['sync-sequences', '--owner', 'owner-1', '--year', '2025'])

        assert result.exit_code == 0, result.output
        assert 'siguiente 251' in result.output
        allocator = get_allocator(session)
        assert allocator.next_number('owner-1', 'COT', 2025) == 251
        assert allocator.next_number('owner-1', 'ORD', 2025) == 121
        assert allocator.next_number('owner-2', 'COT', 2025) == 100

    def test_owner_is_required(self, app, session):
        result = app.test_cli_runner().invoke(args=['sync-sequences'])
        assert result.exit_code != 0

    def test_init_db_is_idempotent(self, app, session):
        result = app.test_cli_runner().invoke(args=['init-db'])
        assert result.exit_code == 0


class TestOperationalEndpoints:

    def test_health(self, client):
        response = client.get('/health')

        assert response.status_code == 200
        assert response.get_json()['status'] == 'healthy'

    def test_health_reports_database_failure(self, client, mocker):
        broken = mocker.MagicMock()
        broken.query.side_effect = OperationalError('SELECT', {}, Exception('connection refused'))
        mocker.patch('servicedesk.blueprints.main.get_session', return_value=broken)

        response = client.get('/health')

        assert response.status_code == 503
        assert response.get_json()['status'] == 'unhealthy'

    def test_metrics(self, authenticated_client, quote_factory):
        quote_factory()

        response = authenticated_client.get('/metrics')

        assert response.status_code == 200
        assert b'folios_allocated_total' in response.data
        assert b'http_requests_total' in response.data

    def test_unknown_route_renders_404_page(self, client):
        response = client.get('/no-existe')

        assert response.status_code == 404
        assert 'Página no encontrada' in response.get_data(as_text=True)
