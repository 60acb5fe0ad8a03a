import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from portal.config import get_settings


logger = logging.getLogger(__name__)

_client: Optional[AsyncIOMotorClient] = None
_database: Optional[AsyncIOMotorDatabase] = None


async def connect_to_mongo() -> None:
    global _client, _database
    settings = get_settings()
    _client = AsyncIOMotorClient(settings.mongo_url)
    _database = _client[settings.mongo_db_name]
    logger.info("connected to mongo database %s", settings.mongo_db_name)
    await ensure_indexes(_database)


async def close_mongo_connection() -> None:
    global _client, _database
    if _client is not None:
        _client.close()
    _client = None
    _database = None


def get_database() -> AsyncIOMotorDatabase:
    if _database is None:
        raise RuntimeError("Mongo connection has not been initialised")
    return _database


async def mongo_db_dependency() -> AsyncIOMotorDatabase:
    return get_database()


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    from portal.repositories.category_repository import CategoryRepository
    from portal.repositories.channel_repository import ChannelRepository
    from portal.repositories.conversation_repository import ConversationRepository
    from portal.repositories.device_repository import DeviceRepository
    from portal.repositories.forum_repository import ForumPostRepository
    from portal.repositories.inbox_repository import InboxRepository
    from portal.repositories.message_repository import MessageRepository
    from portal.repositories.mute_repository import MuteRepository
    from portal.repositories.organization_repository import OrganizationRepository
    from portal.repositories.saved_repository import SavedMessageRepository
    from portal.repositories.user_repository import UserRepository

    for repo in (
        OrganizationRepository(db),
        UserRepository(db),
        CategoryRepository(db),
        ChannelRepository(db),
        MuteRepository(db),
        MessageRepository(db),
        ConversationRepository(db),
        InboxRepository(db),
        DeviceRepository(db),
        SavedMessageRepository(db),
        ForumPostRepository(db),
    ):
        await repo.ensure_indexes()
