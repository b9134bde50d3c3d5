"""
Unit tests for carrier API client.
"""
from datetime import datetime, timedelta, timezone as dt_timezone

import httpx
import pytest
from unittest.mock import patch

from loads.services.carrier_client import CarrierClient, TokenCache, UpstreamFetchError

BASE_URL = 'https://carrier.example/v1/public'
TOKEN_URL = 'https://carrier.example/oauth/token/'


def _oauth_client():
    return CarrierClient(
        base_url=BASE_URL + '/',
        token_url=TOKEN_URL,
        client_id='client-id',
        client_secret='client-secret',
    )


class TestTokenCache:

    def test_empty_cache_is_invalid(self):
        assert TokenCache().is_valid() is False

    def test_valid_until_leeway(self):
        now = datetime(2025, 11, 19, 12, 0, tzinfo=dt_timezone.utc)
        cache = TokenCache()
        cache.store('token-1', 3600, now=now)

        assert cache.is_valid(now) is True
        assert cache.is_valid(now + timedelta(seconds=3600 - 61)) is True
        assert cache.is_valid(now + timedelta(seconds=3600 - 60)) is False

    def test_clear(self):
        cache = TokenCache()
        cache.store('token-1', 3600)
        cache.clear()
        assert cache.is_valid() is False


class TestCarrierClientAuth:
    """Tests for carrier API authentication."""

    @patch('loads.services.carrier_client.httpx.request')
    @patch('loads.services.carrier_client.httpx.post')
    def test_static_api_key(self, mock_post, mock_request):
        mock_request.return_value = httpx.Response(200, json={'data': {'object': {'guid': 'g-1'}}})
        client = CarrierClient(base_url=BASE_URL, api_key='static-key')

        assert client.get_order('g-1') == {'guid': 'g-1'}

        mock_post.assert_not_called()
        call_args, call_kwargs = mock_request.call_args
        assert call_args == ('GET', f'{BASE_URL}/orders/g-1')
        assert call_kwargs['headers']['Authorization'] == 'Bearer static-key'

    @patch('loads.services.carrier_client.httpx.request')
    @patch('loads.services.carrier_client.httpx.post')
    def test_oauth_token_is_reused(self, mock_post, mock_request):
        mock_post.return_value = httpx.Response(200, json={'access_token': 'oauth-token', 'expires_in': 3600})
        mock_request.return_value = httpx.Response(200, json={'data': {'guid': 'g-1'}})
        client = _oauth_client()

        client.get_order('g-1')
        client.get_order('g-1')

        mock_post.assert_called_once()
        assert mock_post.call_args.args[0] == TOKEN_URL
        assert mock_post.call_args.kwargs['auth'] == ('client-id', 'client-secret')
        assert mock_post.call_args.kwargs['data'] == {'grant_type': 'client_credentials'}
        assert mock_request.call_args.kwargs['headers']['Authorization'] == 'Bearer oauth-token'

    @patch('loads.services.carrier_client.httpx.request')
    @patch('loads.services.carrier_client.httpx.post')
    def test_unauthorized_clears_token(self, mock_post, mock_request):
        mock_post.return_value = httpx.Response(200, json={'access_token': 'oauth-token', 'expires_in': 3600})
        mock_request.return_value = httpx.Response(401, text='token revoked')
        client = _oauth_client()

        with pytest.raises(UpstreamFetchError) as excinfo:
            client.get_order('g-1')

        assert excinfo.value.status_code == 401
        assert client.token_cache.access_token is None

    @patch('loads.services.carrier_client.httpx.post')
    def test_token_rejected(self, mock_post):
        mock_post.return_value = httpx.Response(400, text='invalid_client')

        with pytest.raises(UpstreamFetchError) as excinfo:
            _oauth_client().get_order('g-1')

        assert excinfo.value.status_code == 400

    @patch('loads.services.carrier_client.httpx.request')
    @patch('loads.services.carrier_client.httpx.post')
    def test_token_body_not_json(self, mock_post, mock_request):
        mock_post.return_value = httpx.Response(200, text='<html>login</html>')

        with pytest.raises(UpstreamFetchError) as excinfo:
            _oauth_client().get_order('g-1')

        assert excinfo.value.status_code == 200
        assert isinstance(excinfo.value.__cause__, ValueError)
        mock_request.assert_not_called()

    @pytest.mark.parametrize('body', [{'token_type': 'bearer'}, ['oauth-token'], {'access_token': ''}])
    @patch('loads.services.carrier_client.httpx.request')
    @patch('loads.services.carrier_client.httpx.post')
    def test_token_body_without_access_token(self, mock_post, mock_request, body):
        mock_post.return_value = httpx.Response(200, json=body)
        client = _oauth_client()

        with pytest.raises(UpstreamFetchError):
            client.get_order('g-1')

        assert client.token_cache.is_valid() is False
        mock_request.assert_not_called()

    @patch('loads.services.carrier_client.httpx.request')
    @patch('loads.services.carrier_client.httpx.post')
    def test_unreadable_expires_in_uses_default(self, mock_post, mock_request):
        mock_post.return_value = httpx.Response(200, json={'access_token': 'oauth-token', 'expires_in': 'soon'})
        mock_request.return_value = httpx.Response(200, json={'data': {'guid': 'g-1'}})
        client = _oauth_client()

        client.get_order('g-1')

        assert client.token_cache.access_token == 'oauth-token'
        assert client.token_cache.is_valid() is True


class TestCarrierClientRequests:
    """Tests for carrier API calls."""

    def setup_method(self):
        self.client = CarrierClient(base_url=BASE_URL, api_key='static-key', timeout=5)

    @patch('loads.services.carrier_client.httpx.request')
    def test_not_found(self, mock_request):
        mock_request.return_value = httpx.Response(404, text='not found')

        with pytest.raises(UpstreamFetchError) as excinfo:
            self.client.get_order('missing')

        assert excinfo.value.not_found is True
        assert excinfo.value.response_body == 'not found'

    @patch('loads.services.carrier_client.httpx.request')
    def test_server_error(self, mock_request):
        mock_request.return_value = httpx.Response(503, text='unavailable')

        with pytest.raises(UpstreamFetchError) as excinfo:
            self.client.get_order('g-1')

        assert excinfo.value.not_found is False
        assert excinfo.value.status_code == 503

    @pytest.mark.parametrize('error', [
        httpx.TimeoutException('Request timed out'),
        httpx.ConnectError('Connection refused'),
    ])
    @patch('loads.services.carrier_client.httpx.request')
    def test_network_errors(self, mock_request, error):
        mock_request.side_effect = error

        with pytest.raises(UpstreamFetchError) as excinfo:
            self.client.get_order('g-1')

        assert excinfo.value.status_code is None
        assert excinfo.value.__cause__ is error

    @patch('loads.services.carrier_client.httpx.request')
    def test_invalid_json(self, mock_request):
        mock_request.return_value = httpx.Response(200, text='<html>oops</html>')

        with pytest.raises(UpstreamFetchError):
            self.client.get_order('g-1')

    @patch('loads.services.carrier_client.httpx.request')
    def test_get_bol_url(self, mock_request):
        mock_request.return_value = httpx.Response(200, json={'data': {'url': 'https://docs/bol.pdf'}})

        assert self.client.get_bol_url('g-1') == 'https://docs/bol.pdf'
        assert mock_request.call_args.args == ('GET', f'{BASE_URL}/orders/g-1/bol')

    @patch('loads.services.carrier_client.httpx.request')
    def test_get_bol_url_top_level(self, mock_request):
        mock_request.return_value = httpx.Response(200, json={'url': 'https://docs/bol.pdf'})
        assert self.client.get_bol_url('g-1') == 'https://docs/bol.pdf'

    @pytest.mark.parametrize('body', [['https://docs/bol.pdf'], 'https://docs/bol.pdf', 42])
    @patch('loads.services.carrier_client.httpx.request')
    def test_get_bol_url_unexpected_shape(self, mock_request, body):
        mock_request.return_value = httpx.Response(200, json=body)
        assert self.client.get_bol_url('g-1') is None

    @patch('loads.services.carrier_client.httpx.request')
    def test_create_order(self, mock_request):
        mock_request.return_value = httpx.Response(
            201, json={'data': {'object': {'guid': 'g-new', 'number': 'K111925CA1'}}}
        )
        payload = {'number': 'K111925CA1', 'vehicles': [{'vin': 'V1'}]}

        order = self.client.create_order(payload)

        assert order == {'guid': 'g-new', 'number': 'K111925CA1'}
        call_args, call_kwargs = mock_request.call_args
        assert call_args == ('POST', f'{BASE_URL}/orders')
        assert call_kwargs['json'] == payload
        assert call_kwargs['timeout'] == 5
