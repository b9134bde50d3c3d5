import os
import sys

import pytest

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'dispatch_gateway.settings')


@pytest.fixture
def carrier_order_payload():
    """Return a carrier order as echoed by order creation or a sync."""
    return {
        'guid': '3f2b8c1e-6a7d-4f1e-9b2a-5c8d7e6f1a2b',
        'number': 'K111925CA1',
        'status': 'new',
        'customer': {
            'name': 'Dana Fleet',
            'email': 'Dana@Fleet.example',
            'phone': '555-0100',
        },
        'pickup': {
            'venue': {
                'address': '2772 S 5600 W',
                'city': 'West Valley City',
                'state': 'UT',
                'zip': '84120',
            },
            'scheduled_at': '2025-11-19T16:00:00.000Z',
        },
        'delivery': {
            'venue': {
                'address': '500 Ocean Ave',
                'city': 'Santa Monica',
                'state': 'CA',
                'zip': '90401',
            },
            'date': '2025-11-22',
        },
        'carrier': {
            'name': 'Roadrunner Transport',
            'phone': '555-0199',
            'driver': {'name': 'Sam Driver', 'phone': '555-0142'},
        },
        'vehicles': [
            {
                'vin': '1FTBR1C82MKA69174',
                'year': 2021,
                'make': 'Ford',
                'model': 'Transit',
                'lot_number': 'KB-12345',
            }
        ],
    }


@pytest.fixture
def webhook_config(db):
    from loads.models import WebhookConfig

    return WebhookConfig.objects.create(
        name='partner',
        webhook_url='https://partner.example/webhooks/status',
        secret_token='shh-secret',
        enabled=True
    )


@pytest.fixture
def partner_submission():
    """Return a partner order submission with four vans."""
    return {
        'vehicles': [
            {'vin': 'VIN0000000000001', 'issue_number': 'KB-1'},
            {'vin': 'VIN0000000000002', 'issue_number': 'KB-2'},
            {'vin': 'VIN0000000000003', 'issue_number': 'KB-3'},
            {'vin': 'VIN0000000000004', 'issue_number': 'KB-4'},
        ],
        'pickup': {
            'address': '2772 S 5600 W, West Valley City, UT 84120',
            'notes': 'Keys at front desk',
        },
        'delivery': {
            'address': '500 Ocean Ave, Santa Monica, CA 90401',
            'delivery_notes': 'Call ahead',
        },
    }
