# storefront/routes/settings.py
from typing import Optional

from fastapi import APIRouter, Depends, Query

from storefront.middleware.maintenance import MAINTENANCE_MESSAGE
from storefront.services.settings import SettingsService
from storefront.utils.deps import get_settings_service

router = APIRouter(tags=["Settings"])


# Public store settings; keys is a comma separated list
@router.get("/api/settings")
async def get_public_settings(
    keys: Optional[str] = Query(None, description="Comma separated setting keys"),
    category: Optional[str] = Query(None),
    service: SettingsService = Depends(get_settings_service),
):
    wanted = [k.strip() for k in keys.split(",")] if keys else None
    data = await service.get_settings(wanted, category)
    return {"success": True, "data": data}


@router.get("/api/check-maintenance")
async def check_maintenance(service: SettingsService = Depends(get_settings_service)):
    return {"maintenanceMode": await service.maintenance_mode()}


@router.get("/api/announcement")
async def get_announcement(service: SettingsService = Depends(get_settings_service)):
    return {"text": await service.announcement()}


@router.get("/maintenance")
async def maintenance_page(service: SettingsService = Depends(get_settings_service)):
    return {
        "maintenanceMode": await service.maintenance_mode(),
        "message": MAINTENANCE_MESSAGE,
    }
