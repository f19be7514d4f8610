import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

SEARCH_URL = (
    "https://www.airbnb.co.uk/s/Edinburgh/homes?checkin=2025-08-12&checkout=2025-08-13"
    "&adults=2&children=1&pets=1&price_max=410"
)


def make_result(
    listing_id="111",
    price="£250 night",
    rating="4.85 (120)",
    name="Cosy flat",
    title="Flat in Edinburgh",
):
    result = {"avgRatingLocalized": rating}
    if price is not None:
        result["structuredDisplayPrice"] = {"primaryLine": {"price": price}}
    listing = {"name": name, "title": title}
    if listing_id is not None:
        listing["id"] = listing_id
    result["listing"] = listing
    return result


def make_payload(results, layout="nested"):
    data = {"data": {"presentation": {"staysSearch": {"results": {"searchResults": results}}}}}
    if layout == "nested":
        return {"niobeMinimalClientData": [["StaysSearch:{}", data]]}
    if layout == "flat":
        return {"niobeMinimalClientData": ["StaysSearch:{}", data]}
    raise ValueError(layout)


def make_page(payload, script_attrs='id="data-deferred-state-0" type="application/json"'):
    body = payload if isinstance(payload, str) else json.dumps(payload)
    return f"<html><head><script {script_attrs}>{body}</script></head><body></body></html>"


def page_with_ids(*ids):
    return make_page(make_payload([make_result(listing_id=i) for i in ids]))


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "watcher.db"
