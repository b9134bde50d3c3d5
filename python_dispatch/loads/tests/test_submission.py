"""
Tests for partner order submission.
"""
from datetime import date
from unittest.mock import Mock, patch

import pytest

from loads.models import Load
from loads.services.carrier_client import CarrierClient, UpstreamFetchError
from loads.services.order_builder import OrderValidationError
from loads.services.submission import (
    MISSING_DELIVERY_ADDRESS,
    MISSING_PICKUP_ADDRESS,
    MISSING_VEHICLES,
    MISSING_VIN,
    submit_partner_orders,
    validate_submission,
)

TODAY = date(2025, 11, 19)


def _echo(payload):
    """Carrier create-order response: the request plus its guid."""
    return {**payload, 'guid': f"guid-{payload['number']}", 'status': 'new'}


class TestValidateSubmission:

    def test_valid(self, partner_submission):
        assert validate_submission(partner_submission) == (True, None)

    def test_structured_addresses_are_valid(self, partner_submission):
        partner_submission['pickup'] = {'address': {'street': '1 A St', 'city': 'Austin', 'state': 'TX'}}
        assert validate_submission(partner_submission) == (True, None)

    @pytest.mark.parametrize('vehicles', [None, [], 'VIN1'])
    def test_missing_vehicles(self, partner_submission, vehicles):
        partner_submission['vehicles'] = vehicles
        assert validate_submission(partner_submission) == (False, MISSING_VEHICLES)

    def test_vehicle_without_vin(self, partner_submission):
        partner_submission['vehicles'].append({'issue_number': 'KB-5', 'vin': '  '})
        assert validate_submission(partner_submission) == (False, MISSING_VIN)

    def test_missing_pickup(self, partner_submission):
        partner_submission['pickup'] = {'notes': 'no address'}
        assert validate_submission(partner_submission) == (False, MISSING_PICKUP_ADDRESS)

    def test_missing_delivery(self, partner_submission):
        partner_submission['delivery'] = {'address': {'street': '', 'city': None}}
        assert validate_submission(partner_submission) == (False, MISSING_DELIVERY_ADDRESS)

    def test_not_a_dict(self):
        assert validate_submission(['VIN1']) == (False, MISSING_VEHICLES)


@pytest.mark.django_db
@patch('loads.services.order_builder.timezone.localdate', return_value=TODAY)
class TestSubmitPartnerOrders:

    def setup_method(self):
        self.client = Mock(spec=CarrierClient)

    def test_invalid_submission_raises(self, mock_today, partner_submission):
        partner_submission['vehicles'][0]['vin'] = ''

        with pytest.raises(OrderValidationError) as excinfo:
            submit_partner_orders(partner_submission, client=self.client)

        assert excinfo.value.code == MISSING_VIN
        self.client.create_order.assert_not_called()

    def test_all_orders_created(self, mock_today, partner_submission):
        self.client.create_order.side_effect = _echo

        results = submit_partner_orders(partner_submission, client=self.client)

        assert [result['status'] for result in results] == ['created', 'created']
        assert [result['order_number'] for result in results] == ['K111925CA1', 'K111925CA2']
        assert results[0]['issue_numbers'] == ['KB-1', 'KB-2', 'KB-3']
        assert results[1]['vehicles'] == [{'vin': 'VIN0000000000004', 'issue_number': 'KB-4'}]
        assert results[0]['guid'] == 'guid-K111925CA1'

        load = Load.objects.get(id=results[0]['load_id'])
        assert load.order_id == 'K111925CA1'
        assert load.reference_id == 'KB-1'
        assert load.vehicle_vin == 'VIN0000000000001'
        assert load.status == 'NEW'
        assert load.delivery_state == 'CA'
        assert Load.objects.count() == 2

    def test_partial_failure(self, mock_today, partner_submission):
        self.client.create_order.side_effect = [
            _echo({'number': 'K111925CA1', 'vehicles': [{'vin': 'VIN0000000000001', 'lot_number': 'KB-1'}]}),
            UpstreamFetchError(
                'Carrier API returned 422',
                status_code=422,
                response_body='{"data": {"message": "Invalid VIN"}}',
            ),
        ]

        results = submit_partner_orders(partner_submission, client=self.client)

        assert results[0]['status'] == 'created'
        assert results[1] == {
            'order_number': 'K111925CA2',
            'status': 'failed',
            'error': 'Invalid VIN',
            'status_code': 422,
        }
        assert Load.objects.count() == 1

    def test_echo_without_number_uses_request_number(self, mock_today, partner_submission):
        partner_submission['vehicles'] = partner_submission['vehicles'][:1]
        self.client.create_order.return_value = {'guid': 'g-1', 'vehicles': [{'vin': 'VIN0000000000001'}]}

        results = submit_partner_orders(partner_submission, client=self.client)

        assert results[0]['order_id'] == 'K111925CA1'
        assert Load.objects.get().reference_id == 'KB-1'

    def test_explicit_state_sets_region(self, mock_today, partner_submission):
        partner_submission['state'] = 'tx'
        self.client.create_order.side_effect = _echo

        results = submit_partner_orders(partner_submission, client=self.client)

        assert results[0]['order_number'] == 'K111925TX1'
