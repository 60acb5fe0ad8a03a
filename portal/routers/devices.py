from fastapi import APIRouter, Depends

from portal.database.connection import mongo_db_dependency
from portal.repositories.device_repository import DeviceRepository
from portal.schemas.device import DeviceRegistration
from portal.schemas.user import Identity
from portal.utils.dependencies import get_current_user


router = APIRouter(prefix="/devices", tags=["push"])


@router.post("/register")
async def register_device(body: DeviceRegistration, current_user: Identity = Depends(get_current_user), db = Depends(mongo_db_dependency)):
    repo = DeviceRepository(db)
    doc = await repo.register(current_user.user_id, body.platform, body.token)
    return {"ok": True, "device": {"platform": doc["platform"], "token": doc["token"]}}


@router.post("/unregister")
async def unregister_device(body: DeviceRegistration, current_user: Identity = Depends(get_current_user), db = Depends(mongo_db_dependency)):
    repo = DeviceRepository(db)
    removed = await repo.unregister(current_user.user_id, body.token)
    return {"ok": True, "removed": removed}
