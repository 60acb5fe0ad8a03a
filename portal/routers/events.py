import asyncio
import logging

import jwt
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from portal.database.connection import mongo_db_dependency
from portal.services.access import access_policy
from portal.utils.ids import to_object_id
from portal.utils.realtime_bus import get_bus, org_topic, user_topic
from portal.utils.security import decode_access_token
from portal.utils.websocket_manager import manager


logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket("/ws/events")
async def events_socket(websocket: WebSocket, db = Depends(mongo_db_dependency)):
    # token and workspace come in the query string: ?token=...&organization_id=...
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=4401)
        return
    try:
        payload = decode_access_token(token)
    except jwt.InvalidTokenError:
        await websocket.close(code=4401)
        return
    user_id = payload.get("sub")
    if not user_id:
        await websocket.close(code=4401)
        return

    topics = [user_topic(user_id)]
    organization_id = websocket.query_params.get("organization_id")
    if organization_id:
        org_oid = to_object_id(organization_id)
        if await access_policy(db).membership(org_oid, user_id) is None:
            await websocket.close(code=4403)
            return
        topics.append(org_topic(org_oid))

    await manager.connect(topics, websocket)
    bus = await get_bus()
    subscribers = []
    tasks = []
    if bus.enabled:
        for topic in topics:
            subscriber = await bus.subscribe(topic, websocket.send_text)
            subscribers.append(subscriber)
            tasks.append(asyncio.create_task(subscriber.run()))
    logger.info("events socket opened for %s on %s", user_id, topics)

    try:
        while True:
            # clients only keep the socket alive; anything they send is ignored
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(topics, websocket)
        for subscriber in subscribers:
            await subscriber.cancel()
        for task in tasks:
            task.cancel()
        logger.info("events socket closed for %s", user_id)
