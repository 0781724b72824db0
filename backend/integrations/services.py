"""
ERP clients.

Stock lookups go to the Business Central OData function ``GetItemStock``
(HTTP Basic auth); stock updates are relayed to the Jubelio webhook with a
bearer token and the mirror token header.
"""
import json
import logging
import os

import requests
from django.conf import settings

logger = logging.getLogger(__name__)


class ErpError(Exception):
    """The ERP could not be reached or answered with an error"""


class ErpNotConfigured(ErpError):
    """Required ERP settings are missing"""


def _setting(name, default=''):
    return getattr(settings, name, os.getenv(name, default))


def _timeout():
    return _setting('ERP_REQUEST_TIMEOUT', 30)


def fetch_item_stock(skus):
    """
    Query Business Central for the stock of ``skus``.

    Returns:
        dict mapping upper-cased item numbers to the ERP item record
        (``itemNo`` plus a ``variants`` list)
    """
    url = _setting('BC_API_URL')
    username = _setting('BC_USERNAME')
    password = _setting('BC_PASSWORD')
    if not url or not username:
        raise ErpNotConfigured('Business Central API is not configured')

    try:
        response = requests.post(
            url,
            json={'skuListJson': json.dumps(list(skus))},
            auth=(username, password),
            headers={'Content-Type': 'application/json'},
            timeout=_timeout(),
        )
        response.raise_for_status()
        payload = response.json()
    except requests.exceptions.Timeout as e:
        logger.error(f"Business Central request timed out for {len(skus)} SKUs")
        raise ErpError('Business Central request timed out') from e
    except requests.exceptions.RequestException as e:
        logger.error(f"Business Central request failed: {str(e)}")
        raise ErpError(f'Business Central request failed: {str(e)}') from e
    except ValueError as e:
        logger.error(f"Business Central returned invalid JSON: {str(e)}")
        raise ErpError('Business Central returned an invalid response') from e

    # ``value`` holds the item list serialized as a JSON string
    value = payload.get('value') if isinstance(payload, dict) else None
    if isinstance(value, str):
        try:
            value = json.loads(value) if value else []
        except ValueError as e:
            raise ErpError('Business Central returned an invalid item list') from e
    if not isinstance(value, list):
        return {}
    return {str(entry.get('itemNo', '')).upper(): entry for entry in value if isinstance(entry, dict)}


def describe_item(sku, record):
    """Lookup result for one SKU in the API's response shape"""
    if record is None:
        return {'sku': sku, 'exists': False, 'stock': None, 'variants': []}
    variants = [
        {
            'variant_code': variant.get('variantCode'),
            'stock': variant.get('stock') or 0,
            'jubelio_item_id': variant.get('jubelioItemId'),
        }
        for variant in record.get('variants') or []
    ]
    return {
        'sku': sku,
        'exists': True,
        'stock': sum(variant['stock'] for variant in variants),
        'variants': variants,
    }


def lookup_skus(skus):
    records = fetch_item_stock(skus)
    return [describe_item(sku, records.get(sku.upper())) for sku in skus]


def relay_stock_data(items):
    """
    Forward stock lines to the Jubelio webhook.

    Certificate validation is disabled for this endpoint; there are no
    retries.
    """
    url = _setting('JUBELIO_WEBHOOK_URL')
    token = _setting('JUBELIO_API_TOKEN')
    mirror_token = _setting('JUBELIO_MIRROR_TOKEN')
    if not url or not token or not mirror_token:
        raise ErpNotConfigured('Jubelio webhook is not configured')

    try:
        response = requests.post(
            url,
            json={'items': items},
            headers={
                'Content-Type': 'application/json',
                'Authorization': f'Bearer {token}',
                'X-Mirror-Token': mirror_token,
            },
            timeout=_timeout(),
            verify=False,
        )
    except requests.exceptions.Timeout as e:
        logger.error(f"Jubelio relay timed out for {len(items)} items")
        raise ErpError('Jubelio webhook timed out') from e
    except requests.exceptions.RequestException as e:
        logger.error(f"Jubelio relay failed: {str(e)}")
        raise ErpError(f'Jubelio webhook request failed: {str(e)}') from e

    if response.status_code >= 400:
        logger.error(f"Jubelio webhook answered {response.status_code}: {response.text[:500]}")
        raise ErpError(f'Jubelio webhook answered with status {response.status_code}')

    logger.info(f"Relayed {len(items)} stock lines to Jubelio ({response.status_code})")
    return {'status_code': response.status_code, 'body': response.text[:1000]}
