"""Listing extraction from a rendered search-results page.

The search page embeds its results as JSON inside a script tag. Neither the
tag nor the path to the results inside the payload is stable, so both are
probed in priority order and the first non-empty match wins. A page with no
recognisable data yields an empty result carrying a reason, never an
exception.
"""

import base64
import binascii
import json
import logging
import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse

from bs4 import BeautifulSoup

log = logging.getLogger(__name__)

PAYLOAD_SELECTORS = (
    "#data-deferred-state-0",
    "#data-deferred-state",
    'script[type="application/json"]',
)

NAME_UNAVAILABLE = "[name unavailable]"
TITLE_UNAVAILABLE = "[title unavailable]"

PRICE_RE = re.compile(r"([£$€¥₹])\s?(\d[\d,]*)")
RATING_RE = re.compile(r"(\d+(?:\.\d+)?)\s*\(([\d,]+)\)")

STAY_PARAMS = (
    ("checkin", "check_in"),
    ("checkout", "check_out"),
    ("adults", "adults"),
    ("children", "children"),
)
OPTIONAL_STAY_PARAMS = ("infants", "pets")


@dataclass(frozen=True)
class Listing:
    id: str
    url: str
    price: int
    currency: str
    rating: float
    review_count: int
    name: str
    title: str


@dataclass(frozen=True)
class ExtractionResult:
    listings: tuple[Listing, ...] = ()
    strategy: str | None = None
    reason: str | None = None

    @property
    def found(self) -> bool:
        return bool(self.listings)


@dataclass(frozen=True)
class ResultPathStrategy:
    """Walks a fixed key/index path into the payload."""

    name: str
    path: tuple[str | int, ...]

    def probe(self, payload: Any) -> list | None:
        node = payload
        for step in self.path:
            if isinstance(step, int):
                if not isinstance(node, list) or not -len(node) <= step < len(node):
                    return None
                node = node[step]
            else:
                if not isinstance(node, dict):
                    return None
                node = node.get(step)
        if isinstance(node, list) and node:
            return node
        return None


_RESULTS_TAIL = ("data", "presentation", "staysSearch", "results", "searchResults")

STRATEGIES = (
    ResultPathStrategy("niobe[1].staysSearch", ("niobeMinimalClientData", 1) + _RESULTS_TAIL),
    ResultPathStrategy("niobe[0][1].staysSearch", ("niobeMinimalClientData", 0, 1) + _RESULTS_TAIL),
    ResultPathStrategy(
        "niobe[0][1].staySearch",
        ("niobeMinimalClientData", 0, 1, "data", "presentation", "staySearch", "results", "searchResults"),
    ),
)


def parse_price(text: str | None) -> tuple[int, str]:
    """Return (price, currency symbol) from a display string like "£250 night"."""
    if not isinstance(text, str) or not text:
        return 0, ""
    match = PRICE_RE.search(text)
    if not match:
        return 0, ""
    return int(match.group(2).replace(",", "")), match.group(1)


def parse_rating(text: str | None) -> tuple[float, int]:
    """Return (rating, review count) from a display string like "4.85 (120)"."""
    if not isinstance(text, str) or not text:
        return 0.0, 0
    match = RATING_RE.search(text)
    if not match:
        return 0.0, 0
    rating = min(max(float(match.group(1)), 0.0), 5.0)
    return rating, int(match.group(2).replace(",", ""))


def build_listing_url(listing_id: str, search_url: str) -> str:
    """Detail-page URL carrying the search's dates and guest counts."""
    parsed = urlparse(search_url)
    params = parse_qs(parsed.query, keep_blank_values=True)

    def first(name: str) -> str:
        values = params.get(name)
        return values[0] if values else ""

    query = [(target, first(source)) for source, target in STAY_PARAMS]
    query += [(name, first(name)) for name in OPTIONAL_STAY_PARAMS if first(name)]

    return f"{parsed.scheme}://{parsed.netloc}/rooms/{listing_id}?{urlencode(query)}"


def _decode_demand_id(encoded: str) -> str | None:
    # Encoded as base64("DemandStayListing:<id>")
    try:
        decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    _, _, listing_id = decoded.rpartition(":")
    return listing_id or None


def _object(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _listing_id(result: dict) -> str | None:
    listing = _object(result.get("listing"))
    listing_id = listing.get("id")
    if isinstance(listing_id, (str, int)) and not isinstance(listing_id, bool) and listing_id != "":
        return str(listing_id)

    demand = _object(result.get("demandStayListing"))
    if _text(demand.get("id")):
        return _decode_demand_id(demand["id"])
    return None


def _price_text(result: dict) -> str | None:
    line = _object(_object(result.get("structuredDisplayPrice")).get("primaryLine")) or _object(
        _object(_object(result.get("pricingQuote")).get("structuredStayDisplayPrice")).get("primaryLine")
    )
    for name in ("price", "discountedPrice", "originalPrice"):
        if _text(line.get(name)):
            return line[name]
    return None


def parse_result(result: dict, search_url: str) -> Listing:
    price, currency = parse_price(_price_text(result))
    rating, review_count = parse_rating(result.get("avgRatingLocalized"))

    listing_id = _listing_id(result)
    if listing_id is None:
        log.debug("Search result without a listing id")
        return Listing(
            id="",
            url=search_url,
            price=price,
            currency=currency,
            rating=rating,
            review_count=review_count,
            name=NAME_UNAVAILABLE,
            title=TITLE_UNAVAILABLE,
        )

    listing = _object(result.get("listing"))
    name = _text(listing.get("name")) or _text(result.get("nameLocalized")) or NAME_UNAVAILABLE
    title = _text(listing.get("title")) or _text(result.get("title")) or TITLE_UNAVAILABLE

    return Listing(
        id=listing_id,
        url=build_listing_url(listing_id, search_url),
        price=price,
        currency=currency,
        rating=rating,
        review_count=review_count,
        name=name,
        title=title,
    )


def _payload_candidates(soup: BeautifulSoup):
    for selector in PAYLOAD_SELECTORS:
        for element in soup.select(selector):
            text = element.get_text()
            if text and text.strip():
                yield selector, text


def extract(document: str, search_url: str) -> ExtractionResult:
    """Pull listings out of a rendered search page.

    `search_url` should be the URL the browser actually landed on; its
    query string supplies the dates and guest counts copied into each
    listing URL.
    """
    soup = BeautifulSoup(document, "html.parser")

    reasons = []
    for selector, text in _payload_candidates(soup):
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            reasons.append(f"{selector}: invalid JSON ({e.msg})")
            continue

        for strategy in STRATEGIES:
            results = strategy.probe(payload)
            if results is None:
                continue

            listings = []
            for item in results:
                if not isinstance(item, dict):
                    log.debug(f"Skipping non-object search result: {item!r}")
                    continue
                try:
                    listings.append(parse_result(item, search_url))
                except (AttributeError, TypeError, ValueError) as e:
                    log.debug(f"Skipping malformed search result: {e}")

            log.info(f"Extracted {len(listings)} listings via {selector} / {strategy.name}")
            return ExtractionResult(
                listings=tuple(listings),
                strategy=strategy.name,
                reason=None if listings else f"{strategy.name}: no parseable results",
            )

        reasons.append(f"{selector}: no search results at any known path")

    if not reasons:
        return ExtractionResult(reason="No data script found in page")
    return ExtractionResult(reason="; ".join(reasons))
