"""Country lookup tables used by the phone and company extractors.

These are hand-curated and incomplete by construction. Everything here is a
plain module-level table so callers (and tests) can extend them.
"""

import re
import unicodedata

# Country names (EN / FR / local) -> ISO-2
COUNTRY_NAMES: dict[str, str] = {
    "france": "FR",
    "république française": "FR",
    "united kingdom": "GB",
    "royaume-uni": "GB",
    "royaume uni": "GB",
    "great britain": "GB",
    "england": "GB",
    "angleterre": "GB",
    "scotland": "GB",
    "uk": "GB",
    "germany": "DE",
    "deutschland": "DE",
    "allemagne": "DE",
    "spain": "ES",
    "españa": "ES",
    "espagne": "ES",
    "italy": "IT",
    "italia": "IT",
    "italie": "IT",
    "belgium": "BE",
    "belgique": "BE",
    "belgië": "BE",
    "switzerland": "CH",
    "suisse": "CH",
    "schweiz": "CH",
    "svizzera": "CH",
    "netherlands": "NL",
    "the netherlands": "NL",
    "nederland": "NL",
    "pays-bas": "NL",
    "austria": "AT",
    "österreich": "AT",
    "autriche": "AT",
    "portugal": "PT",
    "luxembourg": "LU",
    "ireland": "IE",
    "irlande": "IE",
    "monaco": "MC",
    "greece": "GR",
    "grèce": "GR",
    "denmark": "DK",
    "danemark": "DK",
    "sweden": "SE",
    "suède": "SE",
    "norway": "NO",
    "norvège": "NO",
    "finland": "FI",
    "poland": "PL",
    "pologne": "PL",
    "czech republic": "CZ",
    "croatia": "HR",
    "croatie": "HR",
    "malta": "MT",
    "malte": "MT",
    "cyprus": "CY",
    "morocco": "MA",
    "maroc": "MA",
    "tunisia": "TN",
    "tunisie": "TN",
    "united states": "US",
    "united states of america": "US",
    "usa": "US",
    "états-unis": "US",
    "etats-unis": "US",
    "canada": "CA",
    "mexico": "MX",
    "méxico": "MX",
    "mexique": "MX",
    "brazil": "BR",
    "brasil": "BR",
    "brésil": "BR",
    "argentina": "AR",
    "argentine": "AR",
    "chile": "CL",
    "chili": "CL",
    "australia": "AU",
    "australie": "AU",
    "japan": "JP",
    "japon": "JP",
}

# ISO-2 -> display name
COUNTRY_DISPLAY_NAMES: dict[str, str] = {
    "FR": "France",
    "GB": "United Kingdom",
    "DE": "Germany",
    "ES": "Spain",
    "IT": "Italy",
    "BE": "Belgium",
    "CH": "Switzerland",
    "NL": "Netherlands",
    "AT": "Austria",
    "PT": "Portugal",
    "LU": "Luxembourg",
    "IE": "Ireland",
    "MC": "Monaco",
    "GR": "Greece",
    "DK": "Denmark",
    "SE": "Sweden",
    "NO": "Norway",
    "FI": "Finland",
    "PL": "Poland",
    "CZ": "Czech Republic",
    "HR": "Croatia",
    "MT": "Malta",
    "CY": "Cyprus",
    "MA": "Morocco",
    "TN": "Tunisia",
    "US": "United States",
    "CA": "Canada",
    "MX": "Mexico",
    "BR": "Brazil",
    "AR": "Argentina",
    "CL": "Chile",
    "AU": "Australia",
    "JP": "Japan",
}

# Cities / capitals -> ISO-2, used to guess a phone's country from its context
CITY_COUNTRIES: dict[str, str] = {
    "paris": "FR",
    "lyon": "FR",
    "marseille": "FR",
    "nice": "FR",
    "bordeaux": "FR",
    "london": "GB",
    "londres": "GB",
    "edinburgh": "GB",
    "manchester": "GB",
    "berlin": "DE",
    "munich": "DE",
    "münchen": "DE",
    "hamburg": "DE",
    "madrid": "ES",
    "barcelona": "ES",
    "barcelone": "ES",
    "seville": "ES",
    "sevilla": "ES",
    "rome": "IT",
    "roma": "IT",
    "milan": "IT",
    "milano": "IT",
    "venice": "IT",
    "venezia": "IT",
    "firenze": "IT",
    "lisbon": "PT",
    "lisboa": "PT",
    "lisbonne": "PT",
    "porto": "PT",
    "brussels": "BE",
    "bruxelles": "BE",
    "brussel": "BE",
    "amsterdam": "NL",
    "rotterdam": "NL",
    "geneva": "CH",
    "genève": "CH",
    "zurich": "CH",
    "zürich": "CH",
    "lausanne": "CH",
    "vienna": "AT",
    "wien": "AT",
    "dublin": "IE",
    "athens": "GR",
    "athènes": "GR",
    "new york": "US",
    "miami": "US",
    "montreal": "CA",
    "montréal": "CA",
    "marrakech": "MA",
    "buenos aires": "AR",
}

# Recognized French cities (lowercase, accents stripped)
FRENCH_CITIES: frozenset[str] = frozenset({
    "paris", "lyon", "marseille", "toulouse", "nice", "nantes", "strasbourg",
    "montpellier", "bordeaux", "lille", "rennes", "reims", "le havre",
    "saint-etienne", "toulon", "grenoble", "dijon", "angers", "nimes",
    "villeurbanne", "clermont-ferrand", "le mans", "aix-en-provence", "brest",
    "tours", "amiens", "limoges", "annecy", "perpignan", "boulogne-billancourt",
    "metz", "besancon", "orleans", "rouen", "mulhouse", "caen", "nancy",
    "argenteuil", "montreuil", "saint-denis", "roubaix", "tourcoing",
    "avignon", "neuilly-sur-seine", "levallois-perret", "issy-les-moulineaux",
    "courbevoie", "puteaux", "nanterre", "versailles", "vincennes",
    "saint-malo", "biarritz", "cannes", "antibes", "deauville", "honfleur",
    "chamonix", "chamonix-mont-blanc", "megeve", "courchevel", "la rochelle",
    "arcachon", "saint-tropez", "colmar", "ajaccio", "bastia", "menton",
    "saint-jean-de-luz", "carcassonne", "chartres", "fontainebleau",
})

# Postal code prefixes of Paris and Ile-de-France departments
PARIS_REGION_POSTAL_PREFIXES: tuple[str, ...] = (
    "75", "77", "78", "91", "92", "93", "94", "95",
)

# Registrable-domain TLD -> ISO-2 (None = not country specific)
TLD_COUNTRIES: dict[str, str | None] = {
    "fr": "FR",
    "de": "DE",
    "uk": "GB",
    "co.uk": "GB",
    "es": "ES",
    "it": "IT",
    "be": "BE",
    "ch": "CH",
    "nl": "NL",
    "at": "AT",
    "pt": "PT",
    "lu": "LU",
    "ie": "IE",
    "mc": "MC",
    "gr": "GR",
    "dk": "DK",
    "se": "SE",
    "no": "NO",
    "fi": "FI",
    "pl": "PL",
    "cz": "CZ",
    "hr": "HR",
    "mt": "MT",
    "ma": "MA",
    "ca": "CA",
    "mx": "MX",
    "br": "BR",
    "com.br": "BR",
    "ar": "AR",
    "com.ar": "AR",
    "cl": "CL",
    "au": "AU",
    "com.au": "AU",
    "jp": "JP",
    "com": None,
    "org": None,
    "net": None,
    "eu": None,
    "info": None,
    "io": None,
}

# Language-ish URL segments that map to a country ("/fr/", "en-gb")
URL_SEGMENT_COUNTRIES: dict[str, str] = {
    "fr": "FR",
    "de": "DE",
    "es": "ES",
    "it": "IT",
    "pt": "PT",
    "nl": "NL",
    "uk": "GB",
    "gb": "GB",
    "en-gb": "GB",
    "fr-fr": "FR",
    "de-de": "DE",
    "de-at": "AT",
    "de-ch": "CH",
    "fr-be": "BE",
    "fr-ch": "CH",
    "es-es": "ES",
    "it-it": "IT",
    "pt-pt": "PT",
    "nl-nl": "NL",
    "nl-be": "BE",
}


def _alternation(names) -> str:
    # Longest first so "united kingdom" wins over "united"
    ordered = sorted(names, key=len, reverse=True)
    return "|".join(r"\s+".join(re.escape(part) for part in n.split()) for n in ordered)


COUNTRY_NAME_ALTERNATION = _alternation(COUNTRY_NAMES)
COUNTRY_NAME_RE = re.compile(
    rf"(?<![\w-])({COUNTRY_NAME_ALTERNATION})(?![\w-])", re.IGNORECASE
)
# Cities that are also everyday words; only trusted after a postal code
AMBIGUOUS_CITY_NAMES: frozenset[str] = frozenset({"nice", "porto"})


def _written_forms(names) -> list[str]:
    """"New York" and "NEW YORK", never "new york"."""
    forms = []
    for name in names:
        forms.append(" ".join(part[:1].upper() + part[1:] for part in name.split()))
        forms.append(name.upper())
    return forms


CITY_NAME_RE = re.compile(
    rf"(?<![\w-])({_alternation(_written_forms(set(CITY_COUNTRIES) - AMBIGUOUS_CITY_NAMES))})(?![\w-])"
)
ADDRESS_CITY_RE = re.compile(
    rf"(?<!\d)(?:\d{{4}}-\d{{3}}|\d{{4,5}})\s+({_alternation(_written_forms(AMBIGUOUS_CITY_NAMES))})(?![\w-])"
)


def strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def country_code_for_name(name: str | None) -> str | None:
    """Map a country name, or an ISO-2 code, to ISO-2."""
    if not name:
        return None
    cleaned = re.sub(r"\s+", " ", name.strip()).lower()
    if cleaned in COUNTRY_NAMES:
        return COUNTRY_NAMES[cleaned]
    if len(cleaned) == 2 and cleaned.isalpha():
        code = cleaned.upper()
        return "GB" if code == "UK" else code
    return None


def country_display_name(code: str | None) -> str | None:
    if not code:
        return None
    return COUNTRY_DISPLAY_NAMES.get(code.upper())


def is_french_city(city: str | None) -> bool:
    if not city:
        return False
    key = strip_accents(city.strip().lower())
    key = re.sub(r"\s+cedex(\s+\d+)?$", "", key)
    return key in FRENCH_CITIES


def is_paris_region_postal_code(postal_code: str | None) -> bool:
    return bool(
        postal_code
        and len(postal_code) == 5
        and postal_code.isdigit()
        and postal_code.startswith(PARIS_REGION_POSTAL_PREFIXES)
    )


def country_for_tld(suffix: str | None) -> str | None:
    if not suffix:
        return None
    suffix = suffix.lower()
    if suffix in TLD_COUNTRIES:
        return TLD_COUNTRIES[suffix]
    return TLD_COUNTRIES.get(suffix.rsplit(".", 1)[-1])
