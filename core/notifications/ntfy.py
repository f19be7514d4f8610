import logging

import aiohttp

from core.notifications import NotificationClient, SearchAlert
from core.notifications.formatting import format_header, format_text

log = logging.getLogger(__name__)


class NtfyClient(NotificationClient):
    def __init__(self, topic_url: str | None):
        super().__init__(enabled=bool(topic_url))
        self._topic_url = topic_url

    async def send(self, alerts: list[SearchAlert]) -> bool:
        if not self.is_enabled():
            return False

        try:
            async with aiohttp.ClientSession() as session:
                headers = {"Title": format_header(alerts), "Tags": "house"}
                body = format_text(alerts).encode()

                async with session.post(self._topic_url, data=body, headers=headers) as resp:
                    if resp.status in (200, 201):
                        log.info("Ntfy notification sent successfully")
                        return True
                    else:
                        log.error(f"Ntfy notification failed: {resp.status}")
                        return False
        except Exception as e:
            log.error(f"Ntfy notification error: {e}", exc_info=True)
            return False
