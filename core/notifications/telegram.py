import logging

import aiohttp

from core.notifications import NotificationClient, SearchAlert
from core.notifications.formatting import chunk_sections, format_html_sections

log = logging.getLogger(__name__)

MESSAGE_LIMIT = 4096


class TelegramClient(NotificationClient):
    def __init__(self, bot_token: str | None, chat_id: str | None):
        super().__init__(enabled=bool(bot_token and chat_id))
        self._bot_token = bot_token
        self._chat_id = chat_id

    async def send(self, alerts: list[SearchAlert]) -> bool:
        if not self.is_enabled():
            return False

        url = f"https://api.telegram.org/bot{self._bot_token}/sendMessage"
        messages = chunk_sections(format_html_sections(alerts), MESSAGE_LIMIT)

        try:
            async with aiohttp.ClientSession() as session:
                for text in messages:
                    payload = {
                        "chat_id": self._chat_id,
                        "text": text,
                        "parse_mode": "HTML",
                        "disable_web_page_preview": True,
                    }
                    async with session.post(url, json=payload) as resp:
                        if resp.status != 200:
                            log.error(f"Telegram notification failed: {resp.status}")
                            return False
            log.info(f"Telegram notification sent in {len(messages)} message(s)")
            return True
        except Exception as e:
            log.error(f"Telegram notification error: {e}", exc_info=True)
            return False
