"""Shared fixtures: EC keys and a fake requests session."""
import json

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

API_BASE = 'https://api-business.apple.com/v1'
TOKEN_URL = 'https://account.apple.com/auth/oauth2/token'

ENV_VARS = (
    'ABM_PRIVATE_KEY_PATH', 'ABM_CLIENT_ID', 'ABM_KEY_ID', 'ABM_OUTPUT_DIR',
    'ABM_COMPUTER_FILENAME', 'ABM_MOBILE_FILENAME', 'ABM_RATE_LIMIT_DELAY',
    'ABM_SCOPE', 'ABM_TIMEOUT',
)


class FakeResponse:
    def __init__(self, status_code=200, json_data=None, text=None):
        self.status_code = status_code
        self._json = json_data
        if text is None:
            text = json.dumps(json_data) if json_data is not None else ''
        self.text = text

    def json(self):
        if self._json is None:
            raise ValueError("No JSON object could be decoded")
        return self._json


class FakeSession:
    """
    Stands in for requests.Session. Routes are keyed by (method, url, cursor);
    a route value is a FakeResponse or an exception to raise.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.headers = {}
        self.calls = []

    def _dispatch(self, method, url, params=None, **kwargs):
        cursor = (params or {}).get('cursor')
        self.calls.append({'method': method, 'url': url, 'params': params, **kwargs})
        result = self.routes.get((method, url, cursor))
        if result is None:
            return FakeResponse(404, text=f"no route for {method} {url} cursor={cursor}")
        if isinstance(result, Exception):
            raise result
        return result

    def get(self, url, params=None, **kwargs):
        return self._dispatch('GET', url, params=params, **kwargs)

    def post(self, url, **kwargs):
        return self._dispatch('POST', url, **kwargs)


def device(serial, family='Mac', order_number='PO-1', vendor='APPLE',
           order_date='2024-03-01T00:00:00Z'):
    return {
        'id': serial,
        'type': 'orgDevices',
        'attributes': {
            'productFamily': family,
            'orderNumber': order_number,
            'purchaseSourceType': vendor,
            'orderDateTime': order_date,
        },
    }


def coverage(description, status, end, agreement=None):
    attrs = {'description': description, 'status': status, 'endDateTime': end}
    if agreement is not None:
        attrs['agreementNumber'] = agreement
    return {'type': 'appleCareCoverage', 'attributes': attrs}


def device_page(devices, next_cursor=None):
    paging = {'limit': 100}
    if next_cursor:
        paging['nextCursor'] = next_cursor
    return FakeResponse(200, {'data': devices, 'meta': {'paging': paging}})


@pytest.fixture
def ec_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def key_file(tmp_path, ec_key):
    path = tmp_path / 'AuthKey.pem'
    path.write_bytes(ec_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ))
    return path


@pytest.fixture
def clean_env(monkeypatch):
    """Remove ABM_* variables and undo anything load_dotenv sets."""
    for name in ENV_VARS:
        monkeypatch.setenv(name, 'placeholder')
        monkeypatch.delenv(name)
    return monkeypatch
