"""
Device credentials used to sign eTIMS requests.

The latest active ``DeviceCredential`` is cached; saving or deleting any
credential row drops the cache entry.
"""
import logging
import os

from django.conf import settings
from django.core.cache import cache
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

from .models import DeviceCredential

logger = logging.getLogger(__name__)

DEVICE_HEADERS_CACHE_KEY = 'kra:device_headers'
DEVICE_HEADERS_CACHE_TTL = 600  # 10 minutes


class DeviceNotInitialized(Exception):
    """No device credentials are configured"""


def _headers_from_values(tin, bhf_id, cmc_key, dvc_id='', sdc_id='', mrc_no=''):
    headers = {
        'Content-Type': 'application/json',
        'tin': tin,
        'bhfId': bhf_id,
        'cmcKey': cmc_key,
    }
    if dvc_id:
        headers['dvcId'] = dvc_id
    if sdc_id:
        headers['sdcId'] = sdc_id
    if mrc_no:
        headers['mrcNo'] = mrc_no
    return headers


def get_active_credential():
    return DeviceCredential.objects.filter(is_active=True).order_by('-created_at', '-id').first()


def get_device_headers():
    """
    Request headers for eTIMS calls.

    Order of precedence: latest active DeviceCredential, then the KRA_TIN /
    KRA_BHF_ID / KRA_CMC_KEY settings. Raises DeviceNotInitialized when
    neither is available.
    """
    cached = cache.get(DEVICE_HEADERS_CACHE_KEY)
    if cached:
        logger.debug("Cache hit for device headers")
        return dict(cached)

    credential = get_active_credential()
    if credential:
        headers = _headers_from_values(
            credential.tin, credential.bhf_id, credential.cmc_key,
            credential.dvc_id, credential.sdc_id, credential.mrc_no,
        )
        cache.set(DEVICE_HEADERS_CACHE_KEY, headers, DEVICE_HEADERS_CACHE_TTL)
        return dict(headers)

    tin = getattr(settings, 'KRA_TIN', os.getenv('KRA_TIN', ''))
    bhf_id = getattr(settings, 'KRA_BHF_ID', os.getenv('KRA_BHF_ID', ''))
    cmc_key = getattr(settings, 'KRA_CMC_KEY', os.getenv('KRA_CMC_KEY', ''))
    if tin and bhf_id and cmc_key:
        logger.info("Using KRA device credentials from settings")
        return _headers_from_values(tin, bhf_id, cmc_key)

    raise DeviceNotInitialized('Failed to get KRA credentials. Please initialize your device first.')


def invalidate_device_headers():
    cache.delete(DEVICE_HEADERS_CACHE_KEY)
    logger.debug("Invalidated device headers cache")


@receiver([post_save, post_delete], sender=DeviceCredential)
def invalidate_device_headers_on_change(sender, instance, **kwargs):
    invalidate_device_headers()
