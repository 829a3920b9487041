"""
HTTP client for the KRA eTIMS OSCU/VSCU API.

One synchronous POST per call; the caller decides what a non-success
``resultCd`` means for its local records.
"""
import logging
import os

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = 'https://etims-api-sbx.kra.go.ke/etims-api'
DEFAULT_TIMEOUT = 30
SUCCESS_CODE = '000'
# Returned by the select* lookups when nothing changed since lastReqDt
NO_RESULTS_CODE = '001'

ENDPOINTS = {
    'save_item': 'saveItem',
    'save_item_composition': 'saveItemComposition',
    'insert_purchase': 'insertTrnsPurchase',
    'save_sales': 'saveTrnsSalesOsdc',
    'insert_stock_io': 'insertStockIO',
    'save_stock_master': 'saveStockMaster',
    'save_bhf_customer': 'saveBhfCustomer',
    'select_code_list': 'selectCodeList',
    'select_item_class_list': 'selectItemClsList',
    'select_notices': 'selectNoticeList',
}


class EtimsRequestError(Exception):
    """The eTIMS call failed before a usable response came back"""

    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


def is_success(response):
    return isinstance(response, dict) and response.get('resultCd') == SUCCESS_CODE


class EtimsClient:
    def __init__(self, base_url=None, timeout=None, session=None):
        if base_url is None:
            base_url = getattr(settings, 'KRA_API_BASE_URL', os.getenv('KRA_API_BASE_URL', DEFAULT_BASE_URL))
        if timeout is None:
            timeout = getattr(settings, 'KRA_API_TIMEOUT', os.getenv('KRA_API_TIMEOUT', DEFAULT_TIMEOUT))
        self.base_url = base_url.rstrip('/')
        self.timeout = float(timeout)
        self._session = session or requests.Session()

    def url_for(self, endpoint):
        try:
            path = ENDPOINTS[endpoint]
        except KeyError:
            raise ValueError(f"Unknown eTIMS endpoint: {endpoint}")
        return f"{self.base_url}/{path}"

    def post(self, endpoint, payload, headers):
        """POST ``payload`` to ``endpoint`` and return the decoded JSON body"""
        url = self.url_for(endpoint)
        logger.debug(f"eTIMS request {endpoint}: {payload}")

        try:
            response = self._session.post(url, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.Timeout as exc:
            logger.error(f"eTIMS {endpoint} timed out after {self.timeout}s")
            raise EtimsRequestError(f"KRA API request timed out after {self.timeout:g} seconds") from exc
        except requests.HTTPError as exc:
            status_code = exc.response.status_code if exc.response is not None else None
            body = exc.response.text if exc.response is not None else None
            logger.error(f"eTIMS {endpoint} returned HTTP {status_code}: {body}")
            raise EtimsRequestError(f"KRA API returned HTTP {status_code}", status_code=status_code, payload=body) from exc
        except requests.RequestException as exc:
            logger.error(f"eTIMS {endpoint} request failed: {exc}")
            raise EtimsRequestError(f"KRA API request failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise EtimsRequestError('KRA API returned invalid JSON', status_code=response.status_code,
                                    payload=response.text) from exc

        if not isinstance(data, dict):
            raise EtimsRequestError('KRA API returned an unexpected payload', status_code=response.status_code,
                                    payload=data)

        logger.info(f"eTIMS {endpoint} resultCd={data.get('resultCd')} resultMsg={data.get('resultMsg')}")
        return data
