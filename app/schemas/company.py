from typing import Any

from pydantic import BaseModel, Field


class Address(BaseModel):
    street: str | None = None
    postalCode: str | None = None
    city: str | None = None
    country: str | None = None  # ISO-2
    countryName: str | None = None


class CompanyFact(BaseModel):
    name: str | None = None
    legalName: str | None = None
    country: str | None = None  # ISO-2
    countryName: str | None = None
    address: Address | None = None
    openingHours: Any | None = None  # schema.org openingHoursSpecification, as found
    # Where ``country`` came from: schema | address | legal_text | french_city | tld | llm
    countrySource: str | None = Field(default=None, exclude=True)

    def is_empty(self) -> bool:
        return not any(
            (self.name, self.legalName, self.country, self.address, self.openingHours)
        )
