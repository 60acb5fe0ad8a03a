import asyncio
import logging
from typing import Dict, List, Optional

from pyfcm import FCMNotification

from portal.config import get_settings


logger = logging.getLogger(__name__)


class NoopPush:

    enabled = False

    async def send_fcm(self, tokens: List[str], title: str, body: str, data: Optional[Dict[str, str]] = None) -> None:
        return


class FcmPush:

    enabled = True

    def __init__(self, service_account_file: str, project_id: Optional[str]) -> None:
        self._client = FCMNotification(service_account_file=service_account_file, project_id=project_id)

    def _send_one(self, token: str, title: str, body: str, data: Dict[str, str]) -> None:
        self._client.notify(
            fcm_token=token,
            notification_title=title,
            notification_body=body,
            data_payload=data,
        )

    async def send_fcm(self, tokens: List[str], title: str, body: str, data: Optional[Dict[str, str]] = None) -> None:
        payload = {key: str(value) for key, value in (data or {}).items()}
        for token in tokens:
            # pyfcm is synchronous
            try:
                await asyncio.to_thread(self._send_one, token, title, body, payload)
            except Exception as exc:  # one bad token must not stop the rest
                logger.warning("push delivery failed: %s", exc)


_push = None


async def get_push():
    global _push
    if _push is not None:
        return _push
    settings = get_settings()
    if settings.fcm_service_account_file:
        _push = FcmPush(settings.fcm_service_account_file, settings.fcm_project_id)
    else:
        _push = NoopPush()
    return _push
