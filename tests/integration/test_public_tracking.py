"""
Integration tests for anonymous tracking and public token handling.
"""

import pytest
from prometheus_client import REGISTRY
from sqlalchemy import update

from servicedesk.exceptions import RecordNotFound
from servicedesk.models import ServiceRecord
from servicedesk.services import public_token_service, service_record_service
from servicedesk.services.public_token_service import issue_or_reuse, resolve

INTERNAL_KEYS = {'unit_cost', 'cost_lines', 'total_cost', 'profit', 'margin_percent',
                 'customer_phone', 'customer_email', 'diagnosis', 'public_token'}


def all_keys(value):
    keys = set()
    if isinstance(value, dict):
        for key, item in value.items():
            keys.add(key)
            keys |= all_keys(item)
    elif isinstance(value, list):
        for item in value:
            keys |= all_keys(item)
    return keys


def share_as_owner(client, record_id):
    """Share link from a staff session, then drop back to anonymous."""
    with client.session_transaction() as sess:
        sess['owner_id'] = 'owner-1'
    token = client.post(f'/services/{record_id}/share').get_json()['token']
    with client.session_transaction() as sess:
        sess.clear()
    return token


class TestTokenService:

    def test_issue_or_reuse_is_idempotent(self, session, service_factory):
        record_id = service_factory()

        first = issue_or_reuse(session, record_id)
        second = issue_or_reuse(session, record_id)

        assert first == second

    def test_resolve_returns_record(self, session, service_factory):
        record_id = service_factory()
        token = issue_or_reuse(session, record_id)

        assert resolve(session, token).id == record_id

    def test_resolve_unknown_token(self, session, service_factory):
        issue_or_reuse(session, service_factory())

        with pytest.raises(RecordNotFound):
            resolve(session, 'not-a-real-token')

    @pytest.mark.parametrize('token', ['', 'short', 'with spaces in it!!', 'x' * 200, None])
    def test_resolve_malformed_token(self, session, token):
        with pytest.raises(RecordNotFound):
            resolve(session, token)

    def test_missing_record(self, session):
        with pytest.raises(RecordNotFound):
            issue_or_reuse(session, 987654)

    def test_owner_scope(self, session, service_factory):
        record_id = service_factory(owner_id='owner-1')

        with pytest.raises(RecordNotFound):
            issue_or_reuse(session, record_id, owner_id='owner-2')

    def test_concurrent_issue_keeps_first_token(self, session, service_factory, monkeypatch):
        record_id = service_factory()
        original_attach = public_token_service._attach_token

        def racing_attach(db_session, target_id, token):
            # another request attaches its token first
            db_session.execute(
                update(ServiceRecord)
                .where(ServiceRecord.id == target_id)
                .values(public_token='winnerTokenAAAAAAAAAAA')
            )
            db_session.commit()
            return original_attach(db_session, target_id, token)

        monkeypatch.setattr(public_token_service, '_attach_token', racing_attach)

        assert issue_or_reuse(session, record_id) == 'winnerTokenAAAAAAAAAAA'
        stored = session.query(ServiceRecord.public_token).filter(ServiceRecord.id == record_id).scalar()
        assert stored == 'winnerTokenAAAAAAAAAAA'


class TestTrackingPage:

    def test_page_renders_without_login(self, client, service_factory):
        token = share_as_owner(client, service_factory())

        response = client.get(f'/track/{token}')

        assert response.status_code == 200
        html = response.get_data(as_text=True)
        assert 'Laura Méndez' in html
        assert 'Recibido' in html
        assert '<svg' in html
        assert f'http://tracking.test/track/{token}' in html
        assert 'Cargador 65W' in html
        assert '$1,100.00' in html
        assert response.headers['Cache-Control'] == 'no-store'

    def test_public_data_has_no_internal_keys(self, client, service_factory):
        token = share_as_owner(client, service_factory())

        response = client.get(f'/track/{token}/data')

        assert response.status_code == 200
        data = response.get_json()
        assert not INTERNAL_KEYS & all_keys(data)
        assert data['customer_name'] == 'Laura Méndez'
        assert data['grand_total'] == '1300.00'
        assert data['advance_payment'] == '200.00'
        assert data['balance_due'] == '1100.00'

    def test_data_goes_through_public_projector(self, client, service_factory, mocker):
        token = share_as_owner(client, service_factory())
        public_projector = mocker.spy(service_record_service, 'project_public_service')
        internal_projector = mocker.spy(service_record_service, 'project_service')

        response = client.get(f'/track/{token}/data')

        assert response.status_code == 200
        public_projector.assert_called_once()
        internal_projector.assert_not_called()
        entity = public_projector.call_args.args[0]
        assert not {'customer_phone', 'customer_email', 'diagnosis', 'public_token'} & set(entity)

    def test_status_change_is_visible(self, client, service_factory, session):
        record_id = service_factory()
        token = share_as_owner(client, record_id)
        session.query(ServiceRecord).filter_by(id=record_id).update({'status': 'entregado'})
        session.commit()

        data = client.get(f'/track/{token}/data').get_json()

        assert data['status_label'] == 'Entregado'
        assert data['progress'] == 100

    def test_qr_svg(self, client, service_factory):
        token = share_as_owner(client, service_factory())

        response = client.get(f'/track/{token}/qr.svg')

        assert response.status_code == 200
        assert response.mimetype == 'image/svg+xml'
        assert b'<svg' in response.data


class TestNotFound:

    def test_unknown_and_malformed_tokens_look_the_same(self, client, service_factory):
        unknown = client.get('/track/AAAAAAAAAAAAAAAAAAAAAA/data')
        malformed = client.get('/track/not!a!token/data')

        assert unknown.status_code == 404
        assert malformed.status_code == 404
        assert unknown.data == malformed.data

    def test_html_not_found_page(self, client):
        unknown = client.get('/track/AAAAAAAAAAAAAAAAAAAAAA')
        malformed = client.get('/track/x')

        assert unknown.status_code == 404
        assert malformed.status_code == 404
        assert unknown.data == malformed.data

    def test_qr_for_unknown_token(self, client):
        assert client.get('/track/AAAAAAAAAAAAAAAAAAAAAA/qr.svg').status_code == 404

    def test_token_dies_with_record(self, client, service_factory, session):
        record_id = service_factory()
        token = self.share_token(session, record_id)
        session.query(ServiceRecord).filter_by(id=record_id).delete()
        session.commit()

        assert client.get(f'/track/{token}/data').status_code == 404

    def test_deleting_record_through_api_revokes_link(self, client, service_factory):
        record_id = service_factory()
        token = share_as_owner(client, record_id)
        assert client.get(f'/track/{token}/data').status_code == 200

        with client.session_transaction() as sess:
            sess['owner_id'] = 'owner-1'
        assert client.delete(f'/services/{record_id}').status_code == 200
        with client.session_transaction() as sess:
            sess.clear()

        page = client.get(f'/track/{token}')
        data = client.get(f'/track/{token}/data')
        assert page.status_code == 404
        assert data.status_code == 404
        assert page.data == client.get('/track/AAAAAAAAAAAAAAAAAAAAAA').data
        assert data.data == client.get('/track/AAAAAAAAAAAAAAAAAAAAAA/data').data

    def test_failed_lookups_are_counted(self, client):
        labels = {'result': 'not_found'}
        before = REGISTRY.get_sample_value('public_lookups_total', labels) or 0

        client.get('/track/AAAAAAAAAAAAAAAAAAAAAA/data')

        assert REGISTRY.get_sample_value('public_lookups_total', labels) == before + 1

    def share_token(self, session, record_id):
        return issue_or_reuse(session, record_id)
