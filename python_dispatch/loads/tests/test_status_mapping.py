"""
Tests for carrier -> partner status mapping.
"""
import re

import pytest
from hypothesis import given, settings
import hypothesis.strategies as st

from loads.services.status_mapping import PARTNER_STATUS_MAP, map_status

TOKEN_RE = re.compile(r'^\S*$')


class TestMapStatus:

    @pytest.mark.parametrize('carrier_status,expected', [
        ('NEW', 'assigned'),
        ('PENDING', 'assigned'),
        ('DISPATCHED', 'assigned'),
        ('ASSIGNED', 'assigned'),
        ('ACCEPTED', 'assigned'),
        ('PICKED_UP', 'picked_up'),
        ('DELIVERED', 'delivered'),
        ('COMPLETED', 'delivered'),
        ('CANCELLED', 'cancelled'),
        ('CANCELED', 'cancelled'),
    ])
    def test_table(self, carrier_status, expected):
        assert map_status(carrier_status) == expected

    def test_input_is_normalized(self):
        assert map_status(' picked up ') == 'picked_up'
        assert map_status('delivered') == 'delivered'

    def test_unmapped_status_is_echoed(self):
        assert map_status('FOO_BAR') == 'foo_bar'
        assert map_status('In Transit') == 'in_transit'

    def test_empty(self):
        assert map_status(None) == ''
        assert map_status('') == ''

    @settings(max_examples=300)
    @given(value=st.one_of(st.none(), st.text(max_size=40), st.integers()))
    def test_total_and_returns_token(self, value):
        result = map_status(value)
        assert isinstance(result, str)
        assert TOKEN_RE.match(result)

    @given(value=st.sampled_from(sorted(PARTNER_STATUS_MAP)))
    def test_mapped_values_are_partner_vocabulary(self, value):
        assert map_status(value.lower()) in {'assigned', 'picked_up', 'delivered', 'cancelled'}
