"""
End-to-end tests: carrier webhook -> reconciliation -> partner webhook delivery.
"""
from unittest.mock import Mock, patch

import pytest
from rest_framework.test import APIClient

from loads.models import CarrierEvent, Load, WebhookDeliveryLog
from loads.tasks import process_carrier_event


def _partner_response(status_code=200):
    response = Mock()
    response.status_code = status_code
    response.text = '{"received": true}'
    return response


@pytest.mark.django_db
class TestCarrierToPartnerE2E:
    """Carrier events flow through the ledger to the partner endpoint."""

    def _run_task_sync(self, event_id: int) -> None:
        """Run the Celery task synchronously for tests."""
        process_carrier_event(event_id)

    def _post_event(self, payload):
        response = APIClient().post('/webhooks/carrier/', payload, format='json')
        assert response.status_code == 200
        return CarrierEvent.objects.get(id=response.data['event_id'])

    @patch('loads.services.partner_client.httpx.post')
    @patch('loads.views.process_carrier_event.delay')
    def test_pickup_then_relocated_delivery(self, mock_delay, mock_httpx_post, webhook_config):
        mock_delay.side_effect = self._run_task_sync
        mock_httpx_post.return_value = _partner_response(200)

        event = self._post_event({
            'event': 'order.picked_up',
            'load_data': {
                'number': 'K1',
                'guid': 'guid-k1',
                'vehicles': [{'vin': 'V1', 'status': 'picked_up', 'lot_number': 'REF1'}],
            },
        })

        event.refresh_from_db()
        assert event.status == CarrierEvent.Status.PROCESSED
        load = Load.objects.get()
        assert event.load_id == load.id
        assert load.order_id == 'K1'
        assert load.status == 'PICKED_UP'
        assert load.picked_up_at is not None
        picked_up_at = load.picked_up_at

        mock_httpx_post.assert_called_once()
        call_args, call_kwargs = mock_httpx_post.call_args
        assert call_args[0] == webhook_config.webhook_url
        assert call_kwargs['headers']['X-Dispatch-Signature'] == 'shh-secret'
        assert call_kwargs['json'] == {
            'order_id': 'K1',
            'status': 'picked_up',
            'reference_id': 'REF1',
            'vin': 'V1',
            'pickup_eta': None,
            'delivery_eta': None,
            'bol_link': None,
        }

        # The vehicle moves to another carrier order and is delivered there
        self._post_event({
            'event': 'order.delivered',
            'load_data': {
                'number': 'K2',
                'guid': 'guid-k2',
                'status': 'delivered',
                'pdf_bol_url': 'https://docs/k2-bol.pdf',
                'vehicles': [{'vin': 'V1', 'lot_number': 'REF1'}],
            },
        })

        load = Load.objects.get()
        assert load.order_id == 'K2'
        assert load.external_guid == 'guid-k2'
        assert load.status == 'DELIVERED'
        assert load.picked_up_at == picked_up_at
        assert load.delivered_at is not None
        assert load.bol_url == 'https://docs/k2-bol.pdf'

        assert mock_httpx_post.call_count == 2
        delivered_payload = mock_httpx_post.call_args.kwargs['json']
        assert delivered_payload['order_id'] == 'K2'
        assert delivered_payload['status'] == 'delivered'
        assert delivered_payload['bol_link'] == 'https://docs/k2-bol.pdf'

        logs = WebhookDeliveryLog.objects.filter(load=load)
        assert logs.count() == 2
        assert set(logs.values_list('status', flat=True)) == {WebhookDeliveryLog.Status.SUCCESS}

    @patch('loads.services.partner_client.httpx.post')
    @patch('loads.views.process_carrier_event.delay')
    def test_event_without_identifier_is_rejected(self, mock_delay, mock_httpx_post, webhook_config):
        mock_delay.side_effect = self._run_task_sync

        event = self._post_event({'event': 'order.updated', 'load_data': {'status': 'delivered'}})

        event.refresh_from_db()
        assert event.status == CarrierEvent.Status.REJECTED
        assert Load.objects.count() == 0
        mock_httpx_post.assert_not_called()

    @patch('loads.services.partner_client.httpx.post')
    @patch('loads.views.process_carrier_event.delay')
    def test_untracked_load_is_not_sent(self, mock_delay, mock_httpx_post, webhook_config):
        mock_delay.side_effect = self._run_task_sync

        self._post_event({'load_data': {'number': 'K1', 'status': 'accepted', 'vehicles': [{'vin': 'V1'}]}})

        assert Load.objects.get().status == 'ACCEPTED'
        mock_httpx_post.assert_not_called()
        assert WebhookDeliveryLog.objects.count() == 0

    @patch('loads.services.partner_client.httpx.post')
    @patch('loads.views.process_carrier_event.delay')
    def test_failed_delivery_is_retried(self, mock_delay, mock_httpx_post, webhook_config):
        mock_delay.side_effect = self._run_task_sync
        mock_httpx_post.return_value = _partner_response(503)

        event = self._post_event({
            'load_data': {'number': 'K1', 'vehicles': [{'vin': 'V1', 'status': 'dispatched', 'lot_number': 'REF1'}]},
        })

        event.refresh_from_db()
        assert event.status == CarrierEvent.Status.PROCESSED
        log = WebhookDeliveryLog.objects.get()
        assert log.status == WebhookDeliveryLog.Status.FAILED
        assert log.retry_count == 1

        mock_httpx_post.return_value = _partner_response(200)
        response = APIClient().post('/api/partner/webhook-deliveries/retry/', {}, format='json')

        assert response.status_code == 200
        assert response.data['retried'] == 1
        log.refresh_from_db()
        assert log.status == WebhookDeliveryLog.Status.FAILED
        assert log.status_code == 503
        assert log.retried_by.status == WebhookDeliveryLog.Status.SUCCESS
        assert log.retried_by.status_code == 200
        assert WebhookDeliveryLog.objects.count() == 2
        assert mock_httpx_post.call_args.kwargs['json']['status'] == 'assigned'
