"""
Apple Business Manager API access: token exchange, device enumeration and
per-device AppleCare coverage.

Every call is a single blocking request. There is no retry, no 401 refresh
and no 429 handling; pacing is left to the caller.
"""
import logging
from dataclasses import dataclass

import requests

from abm_config import DEFAULT_TIMEOUT, TOKEN_URL
from abm_errors import CoverageError, DeviceListError, TokenError
from apple_care_lookup import CoverageEntry, date_only

logger = logging.getLogger(__name__)

CLIENT_ASSERTION_TYPE = 'urn:ietf:params:oauth:client-assertion-type:jwt-bearer'


def is_success(resp):
    return 200 <= resp.status_code < 300


def get_token(client_assertion, client_id, scope='business', session=None,
              timeout=DEFAULT_TIMEOUT, token_url=TOKEN_URL):
    """
    POST the client assertion to Apple's token endpoint and return the
    access_token. The token is valid for about an hour and is never refreshed.
    """
    data = {
        'grant_type': 'client_credentials',
        'client_id': client_id,
        'client_assertion_type': CLIENT_ASSERTION_TYPE,
        'client_assertion': client_assertion,
        'scope': f'{scope}.api',
    }
    http = session or requests
    try:
        resp = http.post(
            token_url,
            headers={'Content-Type': 'application/x-www-form-urlencoded'},
            data=data,
            timeout=timeout,
        )
    except requests.RequestException as e:
        raise TokenError(f"Token request failed: {e}") from e

    if not is_success(resp):
        raise TokenError(
            f"Token request failed (HTTP {resp.status_code}): {resp.text}",
            status_code=resp.status_code,
            body=resp.text,
        )

    try:
        token_body = resp.json()
    except ValueError as e:
        raise TokenError(f"Failed to decode token JSON: {e} -- response text: {resp.text}",
                         status_code=resp.status_code, body=resp.text) from e

    access_token = token_body.get('access_token') if isinstance(token_body, dict) else None
    if not access_token:
        raise TokenError(f"No access_token in response: {resp.text}",
                         status_code=resp.status_code, body=resp.text)
    return access_token


@dataclass(frozen=True)
class Device:
    serial: str
    product_family: str = 'Unknown'
    order_number: str = ''
    purchase_source_type: str = ''
    order_date_time: str = ''

    @classmethod
    def from_api(cls, obj):
        attrs = obj.get('attributes') or {}
        # null attributes become empty values, not the string "null"
        return cls(
            serial=obj.get('id') or '',
            product_family=attrs.get('productFamily') or 'Unknown',
            order_number=attrs.get('orderNumber') or '',
            purchase_source_type=attrs.get('purchaseSourceType') or '',
            order_date_time=attrs.get('orderDateTime') or '',
        )

    @property
    def is_mac(self):
        return self.product_family == 'Mac'

    @property
    def po_date(self):
        return date_only(self.order_date_time)


class AbmClient:
    """Authenticated ABM API session for one run."""

    def __init__(self, api_base, access_token, session=None, timeout=DEFAULT_TIMEOUT):
        self.api_base = api_base.rstrip('/')
        self.timeout = timeout
        self.pages_fetched = 0
        self.session = session or requests.Session()
        self.session.headers.update({
            'Accept': 'application/json',
            'Authorization': f'Bearer {access_token}',
        })

    def get_json(self, path, params=None):
        """GET a path under api_base and return the decoded body.

        Raises requests.RequestException or ValueError on failure.
        """
        url = self.api_base + path
        resp = self.session.get(url, params=params, timeout=self.timeout)
        if not is_success(resp):
            raise requests.HTTPError(
                f"GET {url} returned status {resp.status_code}: {resp.text}", response=resp
            )
        body = resp.json()
        if not isinstance(body, dict):
            raise ValueError(f"GET {url} returned a {type(body).__name__}, expected an object")
        return body

    def iter_devices(self, on_page_done=None):
        """
        Yield every organization device, following meta.paging.nextCursor
        until a page comes back without one. Any page failure is fatal.

        on_page_done(page_number) is called once the consumer has taken every
        device of a page, before the next page is requested.
        """
        cursor = None
        page = 0
        while True:
            page += 1
            params = {'cursor': cursor} if cursor else None
            try:
                body = self.get_json('/orgDevices', params=params)
            except (requests.RequestException, ValueError) as e:
                raise DeviceListError(f"Failed to fetch device list (page {page}): {e}") from e

            self.pages_fetched += 1
            devices = body.get('data') or []
            logger.info("Page %d: %d devices", page, len(devices))
            for obj in devices:
                if not isinstance(obj, dict) or not obj.get('id'):
                    logger.warning("Skipping device without an id on page %d: %r", page, obj)
                    continue
                yield Device.from_api(obj)
            if on_page_done:
                on_page_done(page)

            paging = (body.get('meta') or {}).get('paging') or {}
            cursor = paging.get('nextCursor')
            if not cursor:
                return

    def get_coverage(self, serial):
        """Return the CoverageEntry list for one device."""
        try:
            body = self.get_json(f'/orgDevices/{serial}/appleCareCoverage')
        except (requests.RequestException, ValueError) as e:
            raise CoverageError(f"Coverage lookup failed for {serial}: {e}") from e
        return [CoverageEntry.from_api(obj) for obj in body.get('data') or []]
