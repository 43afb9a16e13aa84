"""
Provider clients as dependencies, so tests can swap in fakes
"""
from fastapi import Depends

from daycare_messaging.core.config import Settings, get_settings
from daycare_messaging.domain.services.channels import GhlClient
from daycare_messaging.domain.services.zapsign_client import ZapSignClient


def get_ghl_client(settings: Settings = Depends(get_settings)) -> GhlClient:
    return GhlClient(settings)


def get_zapsign_client(settings: Settings = Depends(get_settings)) -> ZapSignClient:
    return ZapSignClient(settings)
