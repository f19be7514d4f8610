"""Human-readable summaries of new-listing batches."""

import html
import re
from dataclasses import dataclass
from urllib.parse import parse_qs, unquote, urlparse

from core.extractor import Listing
from core.notifications import SearchAlert

LOCATION_RE = re.compile(r"/s/([^/]+)")
SEPARATOR = "➖➖➖➖➖➖➖➖➖➖➖➖"


@dataclass(frozen=True)
class SearchSummary:
    location: str
    dates: str
    guests: str
    price_range: str


def _plural(count: int, singular: str, plural: str) -> str:
    return f"{count} {singular if count == 1 else plural}"


def describe_search(search_url: str) -> SearchSummary:
    try:
        parsed = urlparse(search_url)
    except ValueError:
        return SearchSummary("Unknown location", "Unknown dates", "Unknown guests", "Unknown price range")

    params = parse_qs(parsed.query)

    def first(name: str) -> str:
        return params.get(name, [""])[0]

    match = LOCATION_RE.search(parsed.path)
    location = unquote(match.group(1)).replace("-", " ") if match else "Unknown location"

    checkin, checkout = first("checkin"), first("checkout")
    dates = f"{checkin} to {checkout}" if checkin and checkout else "No dates specified"

    adults = int(first("adults")) if first("adults").isdigit() else 0
    children = int(first("children")) if first("children").isdigit() else 0
    guests = _plural(adults, "adult", "adults")
    if children:
        guests += f", {_plural(children, 'child', 'children')}"

    price_min, price_max = first("price_min"), first("price_max")
    if price_min and price_max:
        price_range = f"{price_min} - {price_max}"
    elif price_min:
        price_range = f"From {price_min}"
    elif price_max:
        price_range = f"Up to {price_max}"
    else:
        price_range = "Any price"

    return SearchSummary(location, dates, guests, price_range)


def format_price(listing: Listing) -> str:
    if not listing.price:
        return "Price unavailable"
    return f"{listing.currency}{listing.price}"


def format_rating(listing: Listing) -> str:
    if listing.rating > 0:
        return f"⭐{listing.rating:.1f} ({listing.review_count})"
    return "No ratings"


def total_listings(alerts: list[SearchAlert]) -> int:
    return sum(len(alert.listings) for alert in alerts)


def format_header(alerts: list[SearchAlert]) -> str:
    return (
        f"{_plural(total_listings(alerts), 'New Listing', 'New Listings')} "
        f"Found Across {_plural(len(alerts), 'Search', 'Searches')}"
    )


def format_html_sections(alerts: list[SearchAlert]) -> list[str]:
    """One Telegram-HTML block per search, header first."""
    sections = [f"🔔 <b>{html.escape(format_header(alerts))}</b>"]

    for number, alert in enumerate(alerts, start=1):
        summary = describe_search(alert.search_url)
        lines = [
            f"<b>Search {number}: {html.escape(summary.location)}</b>",
            f"📅 {html.escape(summary.dates)} • 👥 {summary.guests} • "
            f"💰 {html.escape(summary.price_range)}",
            f'🔍 <a href="{html.escape(alert.search_url, quote=True)}">View all results</a>',
            "",
        ]
        for index, listing in enumerate(alert.listings, start=1):
            lines.append(f"  {index}. <b>{html.escape(listing.name)}</b>")
            lines.append(f"  💰 {html.escape(format_price(listing))} • {format_rating(listing)}")
            lines.append(f'  🔗 <a href="{html.escape(listing.url, quote=True)}">View listing</a>')
            lines.append("")
        if number < len(alerts):
            lines.append(SEPARATOR)
        sections.append("\n".join(lines))

    return sections


def format_text(alerts: list[SearchAlert]) -> str:
    lines = [format_header(alerts), ""]
    for alert in alerts:
        summary = describe_search(alert.search_url)
        lines.append(f"{summary.location} ({summary.dates}, {summary.guests})")
        for listing in alert.listings:
            lines.append(f"- {listing.name}: {format_price(listing)}, {format_rating(listing)}")
            lines.append(f"  {listing.url}")
        lines.append("")
    return "\n".join(lines).strip()


def chunk_sections(sections: list[str], limit: int) -> list[str]:
    """Pack sections into messages no longer than `limit` characters.

    A single section longer than the limit is hard-split.
    """
    chunks: list[str] = []
    current = ""
    for section in sections:
        candidate = f"{current}\n\n{section}" if current else section
        if len(candidate) <= limit:
            current = candidate
            continue
        if current:
            chunks.append(current)
        while len(section) > limit:
            chunks.append(section[:limit])
            section = section[limit:]
        current = section
    if current:
        chunks.append(current)
    return chunks
