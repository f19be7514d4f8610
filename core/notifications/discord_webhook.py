import logging

import aiohttp
import discord

from core.notifications import NotificationClient, SearchAlert
from core.notifications.formatting import (
    describe_search,
    format_header,
    format_price,
    format_rating,
)

log = logging.getLogger(__name__)

MAX_EMBEDS_PER_MESSAGE = 10
MAX_CHARS_PER_MESSAGE = 5500
DESCRIPTION_LIMIT = 4096


def build_embed(alert: SearchAlert) -> discord.Embed:
    summary = describe_search(alert.search_url)
    embed = discord.Embed(
        title=f"{len(alert.listings)} new in {summary.location}"[:256],
        url=alert.search_url,
        color=discord.Color.green(),
    )

    lines = []
    for index, listing in enumerate(alert.listings, start=1):
        lines.append(
            f"{index}. [{listing.name}]({listing.url}) · "
            f"{format_price(listing)} · {format_rating(listing)}"
        )
    description = "\n".join(lines)
    if len(description) > DESCRIPTION_LIMIT:
        description = description[: DESCRIPTION_LIMIT - 1] + "…"
    embed.description = description

    embed.add_field(name="Dates", value=summary.dates, inline=True)
    embed.add_field(name="Guests", value=summary.guests, inline=True)
    embed.add_field(name="Price", value=summary.price_range, inline=True)
    return embed


def group_embeds(embeds: list[discord.Embed]) -> list[list[discord.Embed]]:
    groups: list[list[discord.Embed]] = []
    current: list[discord.Embed] = []
    size = 0
    for embed in embeds:
        embed_size = len(embed)
        if current and (
            len(current) >= MAX_EMBEDS_PER_MESSAGE or size + embed_size > MAX_CHARS_PER_MESSAGE
        ):
            groups.append(current)
            current, size = [], 0
        current.append(embed)
        size += embed_size
    if current:
        groups.append(current)
    return groups


class DiscordWebhookClient(NotificationClient):
    def __init__(self, webhook_url: str | None):
        super().__init__(enabled=bool(webhook_url))
        self._webhook_url = webhook_url

    async def send(self, alerts: list[SearchAlert]) -> bool:
        if not self.is_enabled():
            return False

        groups = group_embeds([build_embed(alert) for alert in alerts])
        try:
            async with aiohttp.ClientSession() as session:
                webhook = discord.Webhook.from_url(self._webhook_url, session=session)
                for index, embeds in enumerate(groups):
                    if index == 0:
                        await webhook.send(
                            content=f"🔔 **{format_header(alerts)}**", embeds=embeds, wait=True
                        )
                    else:
                        await webhook.send(embeds=embeds, wait=True)
            log.info("Discord notification sent successfully")
            return True
        except discord.HTTPException as e:
            log.error(f"Failed to send Discord notification: {e}")
            return False
        except Exception as e:
            log.error(f"Discord notification error: {e}", exc_info=True)
            return False
