"""
Integration tests for the service records API.
"""

from datetime import date

from servicedesk.models import ServiceRecord, ServicePart

YEAR = date.today().year


def service_payload(**overrides):
    data = {
        'service_type': 'cctv',
        'customer_name': 'Jorge Ramírez',
        'customer_phone': '5550001111',
        'device_description': 'DVR Hikvision 8 canales',
        'problem_description': 'Sin video en cámara 3',
        'labor_amount': '500',
        'advance_payment': '200',
        'parts': [
            {'description': 'Fuente 12V', 'quantity': 1, 'unit_price': '800', 'unit_cost': '450'},
        ],
    }
    data.update(overrides)
    return data


class TestCreateServiceRecord:

    def test_requires_owner_session(self, client):
        assert client.post('/services/', json=service_payload()).status_code == 401

    def test_create(self, authenticated_client):
        response = authenticated_client.post('/services/', json=service_payload())

        assert response.status_code == 201
        data = response.get_json()
        assert data['order_folio'] == f'ORD-{YEAR}-100'
        assert data['service_type'] == 'CCTV'
        assert data['service_type_label'] == 'Videovigilancia (CCTV)'
        assert data['status'] == 'recibido'
        assert data['status_label'] == 'Recibido'
        assert data['progress'] == 20
        assert data['subtotal'] == '1300.00'
        assert data['total_tax'] == '0.00'
        assert data['grand_total'] == '1300.00'
        assert data['advance_payment'] == '200.00'
        assert data['balance_due'] == '1100.00'
        assert data['lines'][0]['description'] == 'Mano de obra'

    def test_flat_tax(self, authenticated_client):
        data = authenticated_client.post('/services/', json=service_payload(include_tax=True)).get_json()

        assert data['total_tax'] == '208.00'
        assert data['grand_total'] == '1508.00'

    def test_per_part_tax(self, authenticated_client):
        parts = [{'description': 'Fuente 12V', 'quantity': 1, 'unit_price': '800', 'tax_percent': '16'}]

        data = authenticated_client.post('/services/', json=service_payload(parts=parts)).get_json()

        assert data['total_tax'] == '128.00'
        assert data['grand_total'] == '1428.00'

    def test_negative_amounts_are_clamped(self, authenticated_client):
        data = authenticated_client.post(
            '/services/', json=service_payload(labor_amount='-100', advance_payment='-50')
        ).get_json()

        assert data['subtotal'] == '800.00'
        assert data['advance_payment'] == '0.00'
        assert data['balance_due'] == '800.00'

    def test_parts_are_persisted(self, authenticated_client, session):
        record_id = authenticated_client.post('/services/', json=service_payload()).get_json()['id']

        record = session.query(ServiceRecord).filter_by(id=record_id).one()
        assert record.order_number == 100
        assert record.public_token is None
        parts = session.query(ServicePart).filter_by(service_record_id=record_id).all()
        assert len(parts) == 1
        assert float(parts[0].unit_cost) == 450.00

    def test_all_service_types_share_order_sequence(self, authenticated_client):
        first = authenticated_client.post('/services/', json=service_payload(service_type='PC')).get_json()
        second = authenticated_client.post('/services/', json=service_payload(service_type='PHONE')).get_json()

        assert first['order_folio'] == f'ORD-{YEAR}-100'
        assert second['order_folio'] == f'ORD-{YEAR}-101'

    def test_quote_and_order_sequences_are_independent(self, authenticated_client, quote_factory):
        quote_factory()

        data = authenticated_client.post('/services/', json=service_payload()).get_json()

        assert data['order_folio'] == f'ORD-{YEAR}-100'

    def test_invalid_service_type(self, authenticated_client, session):
        response = authenticated_client.post('/services/', json=service_payload(service_type='LAVADORA'))

        assert response.status_code == 400
        assert response.get_json()['field'] == 'service_type'
        assert session.query(ServiceRecord).count() == 0

    def test_missing_customer_name(self, authenticated_client):
        response = authenticated_client.post('/services/', json=service_payload(customer_name=''))
        assert response.status_code == 400


class TestServiceStatus:

    def test_update_status(self, authenticated_client, service_factory):
        record_id = service_factory()

        response = authenticated_client.post(f'/services/{record_id}/status',
                                             json={'status': 'listo_para_entregar'})

        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] == 'listo_para_entregar'
        assert data['status_label'] == 'Listo para Entregar'
        assert data['progress'] == 80

    def test_update_status_with_diagnosis(self, authenticated_client, service_factory):
        record_id = service_factory()

        authenticated_client.post(f'/services/{record_id}/status',
                                  json={'status': 'DIAGNOSTICADO', 'diagnosis': 'Cargador dañado'})

        data = authenticated_client.get(f'/services/{record_id}').get_json()
        assert data['status'] == 'diagnosticado'
        assert data['diagnosis'] == 'Cargador dañado'

    def test_invalid_status(self, authenticated_client, service_factory):
        record_id = service_factory()

        response = authenticated_client.post(f'/services/{record_id}/status', json={'status': 'perdido'})

        assert response.status_code == 400
        assert response.get_json()['field'] == 'status'

    def test_other_owner_cannot_update(self, authenticated_client, service_factory):
        record_id = service_factory(owner_id='owner-2')

        response = authenticated_client.post(f'/services/{record_id}/status', json={'status': 'entregado'})

        assert response.status_code == 404


class TestShareAndTicket:

    def test_share_returns_same_token(self, authenticated_client, service_factory):
        record_id = service_factory()

        first = authenticated_client.post(f'/services/{record_id}/share').get_json()
        second = authenticated_client.post(f'/services/{record_id}/share').get_json()

        assert first['token'] == second['token']
        assert first['url'] == f"http://tracking.test/track/{first['token']}"

    def test_internal_view_shows_token(self, authenticated_client, service_factory):
        record_id = service_factory()
        token = authenticated_client.post(f'/services/{record_id}/share').get_json()['token']

        data = authenticated_client.get(f'/services/{record_id}').get_json()

        assert data['public_token'] == token
        assert 'margin_percent' in data

    def test_share_other_owner_record(self, authenticated_client, service_factory):
        record_id = service_factory(owner_id='owner-2')
        assert authenticated_client.post(f'/services/{record_id}/share').status_code == 404

    def test_ticket_pdf(self, authenticated_client, service_factory, session):
        record_id = service_factory()

        response = authenticated_client.get(f'/services/{record_id}/ticket.pdf')

        assert response.status_code == 200
        assert response.mimetype == 'application/pdf'
        assert response.data[:4] == b'%PDF'
        record = session.query(ServiceRecord).filter_by(id=record_id).one()
        assert record.public_token is not None


class TestDeleteServiceRecord:

    def test_delete(self, authenticated_client, service_factory, session):
        record_id = service_factory()

        response = authenticated_client.delete(f'/services/{record_id}')

        assert response.status_code == 200
        assert response.get_json()['order_folio'] == f'ORD-{YEAR}-100'
        assert session.query(ServiceRecord).count() == 0
        assert session.query(ServicePart).count() == 0
        assert authenticated_client.get(f'/services/{record_id}').status_code == 404

    def test_other_owner_cannot_delete(self, authenticated_client, service_factory, session):
        record_id = service_factory(owner_id='owner-2')

        assert authenticated_client.delete(f'/services/{record_id}').status_code == 404
        assert session.query(ServiceRecord).count() == 1

    def test_requires_owner_session(self, client, service_factory):
        assert client.delete(f'/services/{service_factory()}').status_code == 401


class TestImportFromQuote:

    def test_quote_lines_become_parts(self, authenticated_client, quote_factory, session):
        quote_id = quote_factory()

        response = authenticated_client.post('/services/', json=service_payload(parts=[], from_quote_id=quote_id))

        assert response.status_code == 201
        data = response.get_json()
        assert [line['description'] for line in data['lines']][1:] == [
            'DVR 16 canales', 'Disco duro 2TB', 'Conector BNC'
        ]
        # labor 500 + 18250 from the quote
        assert data['subtotal'] == '18750.00'
        parts = session.query(ServicePart).filter_by(service_record_id=data['id']).order_by(ServicePart.position).all()
        assert float(parts[0].unit_cost) == 11000.00
        assert parts[2].quantity == 5

    def test_quote_lines_follow_given_parts(self, authenticated_client, quote_factory):
        quote_id = quote_factory()

        data = authenticated_client.post('/services/', json=service_payload(from_quote_id=quote_id)).get_json()

        descriptions = [line['description'] for line in data['lines']]
        assert descriptions == ['Mano de obra', 'Fuente 12V', 'DVR 16 canales', 'Disco duro 2TB', 'Conector BNC']

    def test_other_owners_quote_is_rejected(self, authenticated_client, quote_factory, session):
        quote_id = quote_factory(owner_id='owner-2')

        response = authenticated_client.post('/services/', json=service_payload(from_quote_id=quote_id))

        assert response.status_code == 400
        assert response.get_json()['field'] == 'from_quote_id'
        assert session.query(ServiceRecord).count() == 0

    def test_unknown_quote_does_not_spend_an_order_number(self, authenticated_client):
        authenticated_client.post('/services/', json=service_payload(from_quote_id='abc'))

        data = authenticated_client.post('/services/', json=service_payload()).get_json()

        assert data['order_folio'] == f'ORD-{YEAR}-100'
