import asyncio
import logging

from config import Settings
from core.notifications import NotificationClient, SearchAlert
from core.notifications.discord_webhook import DiscordWebhookClient
from core.notifications.ntfy import NtfyClient
from core.notifications.telegram import TelegramClient
from core.notifications.webhook import WebhookClient

log = logging.getLogger(__name__)


class NotificationManager:
    def __init__(self, clients: list[NotificationClient]):
        self.clients = clients
        self._enabled_clients = [c for c in self.clients if c.is_enabled()]
        log.info(
            f"NotificationManager initialized with {len(self._enabled_clients)} enabled clients"
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "NotificationManager":
        return cls(
            [
                TelegramClient(settings.telegram_bot_token, settings.telegram_chat_id),
                NtfyClient(settings.ntfy_topic_url),
                DiscordWebhookClient(settings.discord_webhook_url),
                WebhookClient(
                    settings.webhook_url,
                    method=settings.webhook_method,
                    headers=settings.webhook_headers,
                ),
            ]
        )

    async def notify(self, alerts: list[SearchAlert]) -> dict[str, bool]:
        """Send one aggregated message per channel; searches without listings are dropped."""
        alerts = [alert for alert in alerts if alert.listings]
        if not alerts:
            log.debug("Nothing to notify")
            return {}

        if not self._enabled_clients:
            log.warning("No notification clients enabled, new listings were not delivered")
            return {}

        tasks = [client.send(alerts) for client in self._enabled_clients]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        result_dict = {}
        for i, result in enumerate(results):
            client_name = self._enabled_clients[i].__class__.__name__
            if isinstance(result, Exception):
                log.error(f"{client_name} failed: {result}")
                result_dict[client_name] = False
            else:
                result_dict[client_name] = result

        return result_dict

    def get_enabled_channels(self) -> list[str]:
        return [c.__class__.__name__ for c in self._enabled_clients]
