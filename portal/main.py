from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from portal.config import get_settings
from portal.database.connection import close_mongo_connection, connect_to_mongo, get_database
from portal.errors import PortalError
from portal.routers.conversations import router as conversations_router
from portal.routers.devices import router as devices_router
from portal.routers.directory import router as directory_router
from portal.routers.events import router as events_router
from portal.routers.forum import router as forum_router
from portal.routers.inbox import router as inbox_router
from portal.routers.messages import router as messages_router
from portal.routers.organizations import router as organizations_router
from portal.routers.saved import router as saved_router
from portal.routers.users import router as users_router
from portal.utils.logging import configure_logging
from portal.utils.realtime_bus import reset_bus


@asynccontextmanager
async def lifespan(app: FastAPI):

    configure_logging(get_settings().log_level)
    await connect_to_mongo()
    try:
        yield
    finally:
        await reset_bus()
        await close_mongo_connection()


app = FastAPI(title="Portal API", lifespan=lifespan)


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


app.include_router(organizations_router)
app.include_router(users_router)
app.include_router(directory_router)
app.include_router(messages_router)
app.include_router(conversations_router)
app.include_router(inbox_router)
app.include_router(forum_router)
app.include_router(saved_router)
app.include_router(devices_router)
app.include_router(events_router)


@app.get("/")
async def root():

    db = get_database()
    collections = await db.list_collection_names()
    return {"message": "Connected to MongoDB!", "collections": collections}
