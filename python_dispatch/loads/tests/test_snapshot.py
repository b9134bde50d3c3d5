"""
Unit tests for carrier payload snapshots.
"""
from datetime import date, datetime, timezone as dt_timezone

import pytest

from loads.services.snapshot import (
    MissingIdentifierError,
    build_snapshot,
    extract_bol_url,
    select_vehicle,
)


class TestBuildSnapshot:
    """Tests for build_snapshot function."""

    def test_full_payload(self, carrier_order_payload):
        snapshot = build_snapshot(carrier_order_payload)

        assert snapshot.order_id == 'K111925CA1'
        assert snapshot.guid == '3f2b8c1e-6a7d-4f1e-9b2a-5c8d7e6f1a2b'
        assert snapshot.status == 'NEW'
        assert snapshot.vehicle_vin == '1FTBR1C82MKA69174'
        assert snapshot.vehicle_year == '2021'
        assert snapshot.reference_id == 'KB-12345'
        assert snapshot.customer.email == 'dana@fleet.example'
        assert snapshot.pickup.city == 'West Valley City'
        assert snapshot.pickup.scheduled_time == datetime(2025, 11, 19, 16, 0, tzinfo=dt_timezone.utc)
        assert snapshot.delivery.scheduled_date == date(2025, 11, 22)
        assert snapshot.delivery.scheduled_time is None
        assert snapshot.carrier_name == 'Roadrunner Transport'
        assert snapshot.driver_name == 'Sam Driver'
        assert snapshot.driver_phone == '555-0142'

    def test_identifier_precedence(self):
        assert build_snapshot({'number': 'N1', 'order_id': 'O1', 'guid': 'G1'}).order_id == 'N1'
        assert build_snapshot({'order_id': 'O1', 'guid': 'G1'}).order_id == 'O1'
        assert build_snapshot({'guid': 'G1'}).order_id == 'G1'

    @pytest.mark.parametrize('payload', [{}, {'number': ''}, {'status': 'DELIVERED'}, None])
    def test_missing_identifier_raises(self, payload):
        with pytest.raises(MissingIdentifierError):
            build_snapshot(payload)

    def test_vehicle_status_beats_order_status(self):
        snapshot = build_snapshot({
            'number': 'K1',
            'status': 'new',
            'vehicles': [{'vin': 'V1', 'status': 'picked up'}],
        })
        assert snapshot.status == 'PICKED_UP'

    def test_order_status_used_when_vehicle_has_none(self):
        snapshot = build_snapshot({'number': 'K1', 'status': 'in transit', 'vehicles': [{'vin': 'V1'}]})
        assert snapshot.status == 'IN_TRANSIT'

    def test_explicit_reference_beats_lot_number(self):
        snapshot = build_snapshot({
            'number': 'K1',
            'reference_id': 'REF-EXPLICIT',
            'vehicles': [{'vin': 'V1', 'lot_number': 'LOT-1'}],
        })
        assert snapshot.reference_id == 'REF-EXPLICIT'
        assert snapshot.lot_number == 'LOT-1'

    def test_stop_fields_without_venue(self):
        snapshot = build_snapshot({
            'number': 'K1',
            'pickup': {'address': '1 A St', 'city': 'Austin', 'state': 'TX', 'zip': 78701},
        })
        assert snapshot.pickup.address == '1 A St'
        assert snapshot.pickup.zip == '78701'

    def test_malformed_dates_become_none(self):
        snapshot = build_snapshot({'number': 'K1', 'pickup': {'scheduled_at': 'soon'}})
        assert snapshot.pickup.scheduled_time is None
        assert snapshot.pickup.scheduled_date is None

    def test_load_fields_cover_guid(self, carrier_order_payload):
        fields = build_snapshot(carrier_order_payload).load_fields()
        assert fields['external_guid'] == carrier_order_payload['guid']
        assert fields['order_id'] == 'K111925CA1'


class TestSelectVehicle:

    def test_first_vehicle(self):
        assert select_vehicle({'vehicles': [{'vin': 'A'}, {'vin': 'B'}]}) == {'vin': 'A'}

    def test_first_vehicle_with_vin(self):
        assert select_vehicle({'vehicles': [{'make': 'Ford'}, {'vin': 'B'}]}) == {'vin': 'B'}

    def test_legacy_singular_vehicle(self):
        assert select_vehicle({'vehicle': {'vin': 'L1'}}) == {'vin': 'L1'}

    def test_no_vehicle(self):
        assert select_vehicle({'number': 'K1'}) == {}


class TestExtractBolUrl:

    def test_field_precedence(self):
        data = {
            'bol_url': 'https://d/plain',
            'online_bol_url': 'https://d/online',
            'pdf_bol_url': 'https://d/pdf',
            'pdf_bol_url_with_template': 'https://d/template',
        }
        assert extract_bol_url(data) == 'https://d/template'

    def test_falls_through_blank(self):
        assert extract_bol_url({'pdf_bol_url_with_template': '', 'online_bol_url': 'https://d/online'}) == \
            'https://d/online'

    def test_none(self):
        assert extract_bol_url({}) is None
