import logging
from typing import Any

from pydantic import ValidationError

from app.mappers.countries import (
    country_code_for_name,
    country_display_name,
    is_paris_region_postal_code,
)
from app.schemas.company import Address, CompanyFact

logger = logging.getLogger(__name__)

_ADDRESS_FIELDS = ("street", "postalCode", "city", "country", "countryName")
_COMPANY_FIELDS = ("name", "legalName", "country", "countryName", "openingHours")


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _merge_address(current: Address | None, candidate: Address | None) -> Address | None:
    if current is None:
        return candidate.model_copy() if candidate else None
    if candidate is None:
        return current.model_copy()
    updates = {
        field: getattr(candidate, field)
        for field in _ADDRESS_FIELDS
        if _is_empty(getattr(current, field)) and not _is_empty(getattr(candidate, field))
    }
    return current.model_copy(update=updates)


def apply_country_rules(company: CompanyFact) -> CompanyFact:
    """Country propagation between company and address, display names, French postal guard."""
    country = company.country
    address = company.address.model_copy() if company.address else None

    if address is not None:
        if country and not address.country:
            address.country = country
        elif address.country and not country:
            country = address.country

        # Paris-region postal code always means France
        if is_paris_region_postal_code(address.postalCode) and country != "FR":
            if country:
                logger.debug(
                    "Overriding country %s -> FR for postal code %s",
                    country, address.postalCode,
                )
            country = "FR"
            address.country = "FR"
            address.countryName = None

        if address.country and not address.countryName:
            address.countryName = country_display_name(address.country)

    updated = company.model_copy(update={
        "country": country,
        "countryName": company.countryName if company.country == country else None,
        "address": address,
    })
    if updated.country and not updated.countryName:
        updated.countryName = country_display_name(updated.country)
    return updated


def merge_company(current: CompanyFact | None, candidate: CompanyFact | None) -> CompanyFact | None:
    """Fold one page's company facts into the aggregate. Returns a new object.

    First writer wins per field (address per sub-field). A country that only
    came from the domain's TLD gives way to one found in page content.
    """
    if candidate is None or candidate.is_empty():
        return current
    if current is None:
        return apply_country_rules(candidate)

    updates = {
        field: getattr(candidate, field)
        for field in _COMPANY_FIELDS
        if _is_empty(getattr(current, field)) and not _is_empty(getattr(candidate, field))
    }
    country_source = current.countrySource
    if current.countrySource == "tld" and candidate.country and candidate.countrySource != "tld":
        updates["country"] = candidate.country
        updates["countryName"] = candidate.countryName
        country_source = candidate.countrySource
    elif "country" in updates:
        country_source = candidate.countrySource

    merged = current.model_copy(update=updates)
    merged.address = _merge_address(current.address, candidate.address)
    if updates.get("country") and merged.address and current.countrySource == "tld":
        # Address country was only a copy of the TLD guess
        if merged.address.country == current.country:
            merged.address.country = None
            merged.address.countryName = None
    merged.countrySource = country_source
    return apply_country_rules(merged)


def company_from_llm(data: dict[str, Any] | None) -> CompanyFact | None:
    """Build a CompanyFact from an LLM JSON answer; None when unusable."""
    if not isinstance(data, dict):
        return None
    raw = data.get("company")
    if not isinstance(raw, dict):
        return None

    address_raw = raw.get("address") if isinstance(raw.get("address"), dict) else None
    try:
        address = None
        if address_raw:
            address = Address(
                street=address_raw.get("street"),
                postalCode=str(address_raw["postalCode"]) if address_raw.get("postalCode") else None,
                city=address_raw.get("city"),
                country=country_code_for_name(address_raw.get("country")),
                countryName=address_raw.get("countryName"),
            )
            if not any(getattr(address, f) for f in _ADDRESS_FIELDS):
                address = None
        company = CompanyFact(
            name=raw.get("name"),
            legalName=raw.get("legalName"),
            address=address,
        )
    except ValidationError:
        logger.warning("Discarding malformed LLM company payload")
        return None

    if company.is_empty():
        return None
    company.countrySource = "llm"
    return company


def merge_llm_company(current: CompanyFact | None, data: dict[str, Any] | None) -> CompanyFact | None:
    """LLM company facts only fill fields still empty on ``current``."""
    return merge_company(current, company_from_llm(data))
