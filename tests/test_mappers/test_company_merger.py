"""Tests for company fact merging and country rules."""

from app.mappers.company_merger import (
    apply_country_rules,
    company_from_llm,
    merge_company,
    merge_llm_company,
)
from app.schemas.company import Address, CompanyFact


def _company(source=None, **kwargs) -> CompanyFact:
    company = CompanyFact(**kwargs)
    company.countrySource = source
    return company


# --- Country rules ---


def test_country_copied_to_address():
    company = apply_country_rules(_company(country="BE", address=Address(city="Bruxelles")))
    assert company.address.country == "BE"
    assert company.address.countryName == "Belgium"
    assert company.countryName == "Belgium"


def test_address_country_copied_to_company():
    company = apply_country_rules(_company(address=Address(city="Genève", country="CH")))
    assert company.country == "CH"


def test_paris_postal_code_forces_france():
    company = apply_country_rules(
        _company(country="US", address=Address(postalCode="75008", city="Paris", country="US"))
    )
    assert company.country == "FR"
    assert company.address.country == "FR"
    assert company.countryName == "France"


def test_paris_postal_code_without_country():
    company = apply_country_rules(_company(address=Address(postalCode="75008")))
    assert company.country == "FR"


def test_country_rules_do_not_mutate_input():
    original = _company(address=Address(postalCode="92100"))
    apply_country_rules(original)
    assert original.address.country is None


# --- Merge ---


def test_merge_first_writer_wins():
    current = _company(name="Hotel A", legalName=None)
    candidate = _company(name="Hotel B", legalName="A SAS")
    merged = merge_company(current, candidate)
    assert merged.name == "Hotel A"
    assert merged.legalName == "A SAS"
    assert current.legalName is None


def test_merge_address_per_field():
    current = _company(address=Address(street="1 rue X"))
    candidate = _company(address=Address(street="2 rue Y", postalCode="69001", city="Lyon"))
    merged = merge_company(current, candidate)
    assert merged.address.street == "1 rue X"
    assert merged.address.postalCode == "69001"
    assert merged.address.city == "Lyon"


def test_merge_content_country_replaces_tld_guess():
    current = _company(source="tld", name="Hotel", country="FR")
    candidate = _company(source="address", country="BE", address=Address(city="Bruxelles", country="BE"))
    merged = merge_company(current, candidate)
    assert merged.country == "BE"
    assert merged.address.country == "BE"
    assert merged.countrySource == "address"


def test_merge_content_country_is_kept():
    current = _company(source="address", country="BE")
    candidate = _company(source="schema", country="FR")
    assert merge_company(current, candidate).country == "BE"


def test_merge_with_empty_candidate_returns_current():
    current = _company(name="Hotel")
    assert merge_company(current, CompanyFact()) is current
    assert merge_company(None, None) is None


def test_merge_into_nothing():
    merged = merge_company(None, _company(name="Hotel", address=Address(postalCode="75001")))
    assert merged.name == "Hotel"
    assert merged.country == "FR"


# --- LLM ---


def test_company_from_llm():
    data = {"company": {
        "name": "Hôtel Lumière",
        "legalName": "LUMIERE SAS",
        "address": {"street": "3 rue X", "postalCode": 75008, "city": "Paris", "country": "France"},
    }}
    company = company_from_llm(data)
    assert company.legalName == "LUMIERE SAS"
    assert company.address.postalCode == "75008"
    assert company.address.country == "FR"
    assert company.countrySource == "llm"


def test_company_from_llm_unusable():
    assert company_from_llm(None) is None
    assert company_from_llm({"team": []}) is None
    assert company_from_llm({"company": {"name": None, "address": {}}}) is None


def test_merge_llm_company_only_fills_gaps():
    current = _company(name="Hotel Lumière", legalName="LUMIERE SAS")
    data = {"company": {"name": "Other", "legalName": "OTHER SARL", "address": {"city": "Lyon"}}}
    merged = merge_llm_company(current, data)
    assert merged.name == "Hotel Lumière"
    assert merged.legalName == "LUMIERE SAS"
    assert merged.address.city == "Lyon"
