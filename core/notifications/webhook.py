import json
import logging
from dataclasses import asdict

import aiohttp

from core.notifications import NotificationClient, SearchAlert
from core.notifications.formatting import format_text, total_listings

log = logging.getLogger(__name__)


def build_payload(alerts: list[SearchAlert]) -> dict:
    return {
        "total": total_listings(alerts),
        "message": format_text(alerts),
        "searches": [
            {
                "search_url": alert.search_url,
                "listings": [asdict(listing) for listing in alert.listings],
            }
            for alert in alerts
        ],
    }


class WebhookClient(NotificationClient):
    """Posts the batch as JSON to an arbitrary endpoint."""

    def __init__(self, url: str | None, method: str = "POST", headers: str | None = None):
        super().__init__(enabled=bool(url))
        self._url = url
        self._method = method.upper()
        self._headers = json.loads(headers) if headers else {}

    async def send(self, alerts: list[SearchAlert]) -> bool:
        if not self.is_enabled():
            return False

        try:
            async with aiohttp.ClientSession() as session:
                headers = dict(self._headers)
                headers["Content-Type"] = "application/json"

                async with session.request(
                    self._method, self._url, json=build_payload(alerts), headers=headers
                ) as resp:
                    success = resp.status in (200, 201, 202, 204)

                if success:
                    log.info("Webhook notification sent successfully")
                    return True
                else:
                    log.error(f"Webhook notification failed: {resp.status}")
                    return False
        except Exception as e:
            log.error(f"Webhook notification error: {e}", exc_info=True)
            return False
