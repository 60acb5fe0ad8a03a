import logging
from typing import Dict, Iterable

from portal.repositories.device_repository import DeviceRepository
from portal.utils.notifications import get_push


logger = logging.getLogger(__name__)


class Notifier:
    """Pushes notifications to the registered devices of a set of users."""

    def __init__(self, device_repo: DeviceRepository) -> None:
        self._device_repo = device_repo

    async def push(self, user_ids: Iterable[str], title: str, body: str, data: Dict[str, str]) -> None:
        recipients = sorted(set(user_ids))
        if not recipients:
            return
        push = await get_push()
        if not push.enabled:
            return
        tokens = await self._device_repo.get_tokens(recipients, platform="fcm")
        await push.send_fcm([t["token"] for t in tokens], title, body, data)
        logger.info("pushed %s to %d device(s)", data.get("type"), len(tokens))
