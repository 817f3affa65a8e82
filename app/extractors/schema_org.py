"""schema.org JSON-LD reading.

JSON-LD blocks are parsed into plain JSON values and walked by a small
recursive visitor. Only the Organization-like node shape is interpreted;
everything else is just traversed.
"""

import json
import logging
from collections.abc import Callable, Iterator
from typing import Any, Union

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

JSONValue = Union[None, bool, int, float, str, list["JSONValue"], dict[str, "JSONValue"]]

ORGANIZATION_TYPES = frozenset({
    "organization", "localbusiness", "hotel", "lodgingbusiness", "corporation",
    "resort", "bedandbreakfast", "hostel", "motel", "restaurant",
})


def load_json_ld(soup: BeautifulSoup) -> list[JSONValue]:
    """Parsed JSON-LD blocks of the page; malformed blocks are skipped."""
    blocks: list[JSONValue] = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = script.string or script.get_text()
        if not raw or not raw.strip():
            continue
        try:
            blocks.append(json.loads(raw))
        except json.JSONDecodeError as e:
            logger.debug("Skipping malformed JSON-LD block: %s", e)
    return blocks


def visit(value: JSONValue, on_object: Callable[[dict[str, JSONValue]], None]) -> None:
    """Depth-first walk calling ``on_object`` for every JSON object."""
    if isinstance(value, list):
        for item in value:
            visit(item, on_object)
    elif isinstance(value, dict):
        on_object(value)
        for child in value.values():
            if isinstance(child, (list, dict)):
                visit(child, on_object)


def iter_objects(blocks: list[JSONValue]) -> Iterator[dict[str, JSONValue]]:
    found: list[dict[str, JSONValue]] = []
    for block in blocks:
        visit(block, found.append)
    yield from found


def node_types(node: dict[str, JSONValue]) -> set[str]:
    raw = node.get("@type")
    if isinstance(raw, str):
        return {raw.lower()}
    if isinstance(raw, list):
        return {t.lower() for t in raw if isinstance(t, str)}
    return set()


def is_organization(node: dict[str, JSONValue]) -> bool:
    return bool(node_types(node) & ORGANIZATION_TYPES)


def organization_nodes(blocks: list[JSONValue]) -> list[dict[str, JSONValue]]:
    return [node for node in iter_objects(blocks) if is_organization(node)]


def text_value(node: dict[str, JSONValue], key: str) -> str | None:
    """String property, also accepting ``{"name": ...}`` objects and one-element lists."""
    value: Any = node.get(key)
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, dict):
        value = value.get("name") or value.get("@value")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def collect_emails(blocks: list[JSONValue]) -> list[str]:
    """Every ``email`` value, including those nested in ``contactPoint``."""
    emails: list[str] = []

    def on_object(node: dict[str, JSONValue]) -> None:
        value = node.get("email")
        candidates = value if isinstance(value, list) else [value]
        for candidate in candidates:
            if isinstance(candidate, str) and "@" in candidate:
                emails.append(candidate.strip().removeprefix("mailto:"))
        contact_point = node.get("contactPoint")
        if isinstance(contact_point, str) and "@" in contact_point:
            emails.append(contact_point.strip())

    for block in blocks:
        visit(block, on_object)
    return emails


def postal_address(node: dict[str, JSONValue]) -> dict[str, str | None] | None:
    """``address`` of an organization node as street/postalCode/city/country strings."""
    raw = node.get("address")
    if isinstance(raw, list):
        raw = next((a for a in raw if isinstance(a, dict)), raw[0] if raw else None)
    if isinstance(raw, str):
        return {"text": raw.strip()} if raw.strip() else None
    if not isinstance(raw, dict):
        return None
    address = {
        "street": text_value(raw, "streetAddress"),
        "postalCode": text_value(raw, "postalCode"),
        "city": text_value(raw, "addressLocality"),
        "country": text_value(raw, "addressCountry"),
    }
    return address if any(address.values()) else None


def opening_hours(node: dict[str, JSONValue]) -> JSONValue:
    return node.get("openingHoursSpecification") or node.get("openingHours") or None
