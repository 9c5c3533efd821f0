# prospect_pipeline/domain/normalize.py
from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any


def _with_canonical_identity(mapping: dict[str, str]) -> dict[str, str]:
    """
    Alias tables also map every canonical output (lowercased) to itself,
    so a value that already went through the table comes back unchanged.
    """
    out = dict(mapping)
    for canonical in mapping.values():
        out.setdefault(canonical.lower(), canonical)
    return out


# -----------------------------
# Keys
# -----------------------------
KEY_ALIASES: dict[str, str] = {
    "linked_in_url": "linkedin_url",
    "linked_in": "linkedin_url",
    "linkedin": "linkedin_url",
    "linkedin_profile": "linkedin_url",
    "linkedin_profile_url": "linkedin_url",
    "email_address": "email",
    "given_name": "first_name",
    "firstname": "first_name",
    "family_name": "last_name",
    "surname": "last_name",
    "lastname": "last_name",
    "title": "job_title",
    "position": "job_title",
    "company": "company_name",
    "organization": "company_name",
    "employer": "company_name",
    "domain": "company_domain",
    "company_website": "company_domain",
    "phone_number": "phone",
    "time_zone": "timezone",
    "tz": "timezone",
}

_SEPARATORS = re.compile(r"[\s\-.]+")
_CAMEL_WORD = re.compile(r"(.)([A-Z][a-z]+)")
_CAMEL_TAIL = re.compile(r"([a-z0-9])([A-Z])")
_UNDERSCORES = re.compile(r"_+")


def to_snake_case(key: str) -> str:
    s = _SEPARATORS.sub("_", str(key).strip())
    s = _CAMEL_WORD.sub(r"\1_\2", s)
    s = _CAMEL_TAIL.sub(r"\1_\2", s)
    return _UNDERSCORES.sub("_", s).strip("_").lower()


def _snake_nested(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {to_snake_case(k): _snake_nested(v) for k, v in value.items()}
    return value


def normalize_keys(raw: Mapping[str, Any]) -> dict[str, Any]:
    """
    snake_case every key (recursively for nested maps) and fold known
    aliases onto canonical field names. A canonical key always beats an alias.
    """
    out: dict[str, Any] = {}
    from_alias: set[str] = set()

    for key, value in raw.items():
        snake = to_snake_case(key)
        canonical = KEY_ALIASES.get(snake, snake)
        value = _snake_nested(value)

        if canonical != snake:
            if canonical in out and canonical not in from_alias:
                continue
            from_alias.add(canonical)
        else:
            from_alias.discard(canonical)

        out[canonical] = value

    return out


# -----------------------------
# Job titles
# -----------------------------
JOB_TITLE_ALIASES: dict[str, str] = _with_canonical_identity({
    # VP variations
    "vp sales": "VP of Sales",
    "vice president sales": "VP of Sales",
    "vice president of sales": "VP of Sales",
    "sales vp": "VP of Sales",
    "svp sales": "SVP of Sales",
    "senior vice president sales": "SVP of Sales",
    # Director variations
    "sales director": "Director of Sales",
    "director sales": "Director of Sales",
    "dir. sales": "Director of Sales",
    # C-suite
    "chief executive officer": "CEO",
    "chief technology officer": "CTO",
    "chief marketing officer": "CMO",
    "chief financial officer": "CFO",
    "chief operating officer": "COO",
    "chief revenue officer": "CRO",
    # Head variations
    "head of sales": "Head of Sales",
    "sales head": "Head of Sales",
    "head of growth": "Head of Growth",
    "growth head": "Head of Growth",
    # Manager variations
    "sales mgr": "Sales Manager",
    "sales mgr.": "Sales Manager",
    "sr. sales manager": "Senior Sales Manager",
    "sr sales manager": "Senior Sales Manager",
})

TITLE_STOPWORDS = {"of", "and", "the", "in", "for"}
TITLE_ACRONYMS = {"vp", "svp", "evp", "avp", "ceo", "cto", "cmo", "cfo", "coo", "cro", "cio", "ciso", "hr", "sdr", "bdr"}


def _capitalize(word: str) -> str:
    return word[:1].upper() + word[1:].lower()


def normalize_job_title(title: str) -> str:
    key = " ".join(title.split()).lower()
    if key in JOB_TITLE_ALIASES:
        return JOB_TITLE_ALIASES[key]

    words: list[str] = []
    for word in title.split():
        low = word.lower()
        if low in TITLE_STOPWORDS:
            words.append(low)
        elif low in TITLE_ACRONYMS:
            words.append(word.upper())
        else:
            words.append(_capitalize(word))
    return " ".join(words)


# -----------------------------
# Company names
# -----------------------------
COMPANY_SUFFIXES: tuple[str, ...] = (
    ", Inc.", " Inc.",
    ", LLC", " LLC",
    ", Ltd.", " Ltd.",
    ", Limited", " Limited",
    ", Corp.", " Corp.",
    ", Corporation", " Corporation",
    ", Co.", " Co.",
    ", P.C.", " P.C.",
    ", PLC", " PLC",
    ", LLP", " LLP",
)

COMPANY_ALIASES: dict[str, str] = {
    "microsoft": "Microsoft",
    "google": "Google",
    "apple": "Apple",
    "amazon": "Amazon",
    "facebook": "Meta",
    "meta platforms": "Meta",
    "salesforce.com": "Salesforce",
    "oracle corporation": "Oracle",
}


def normalize_company_name(name: str) -> str:
    out = name.strip()

    # "Foo Inc. LLC" needs two passes
    stripped = True
    while stripped:
        stripped = False
        for suffix in COMPANY_SUFFIXES:
            if out.endswith(suffix) and len(out) > len(suffix):
                out = out[: -len(suffix)].strip()
                stripped = True
                break

    return COMPANY_ALIASES.get(out.lower(), out)


# -----------------------------
# Location / timezone
# -----------------------------
LOCATION_ALIASES: dict[str, str] = _with_canonical_identity({
    # US
    "sf": "San Francisco, CA, USA",
    "san francisco": "San Francisco, CA, USA",
    "san francisco, ca": "San Francisco, CA, USA",
    "san francisco, california": "San Francisco, CA, USA",
    "nyc": "New York, NY, USA",
    "new york": "New York, NY, USA",
    "new york city": "New York, NY, USA",
    "la": "Los Angeles, CA, USA",
    "los angeles": "Los Angeles, CA, USA",
    "chicago": "Chicago, IL, USA",
    "boston": "Boston, MA, USA",
    "seattle": "Seattle, WA, USA",
    "austin": "Austin, TX, USA",
    "denver": "Denver, CO, USA",
    # International
    "london": "London, UK",
    "london, uk": "London, UK",
    "london, england": "London, UK",
    "paris": "Paris, France",
    "berlin": "Berlin, Germany",
    "toronto": "Toronto, ON, Canada",
    "vancouver": "Vancouver, BC, Canada",
    "sydney": "Sydney, NSW, Australia",
    "melbourne": "Melbourne, VIC, Australia",
    "singapore": "Singapore",
    "tokyo": "Tokyo, Japan",
    "bangalore": "Bangalore, India",
    "bengaluru": "Bangalore, India",
})

UPPERCASE_LOCATION_TOKENS = {"usa", "uk", "ca"}

# first substring hit wins; order matters
TIMEZONE_BY_CITY: tuple[tuple[str, str], ...] = (
    ("san francisco", "America/Los_Angeles"),
    ("los angeles", "America/Los_Angeles"),
    ("seattle", "America/Los_Angeles"),
    ("portland", "America/Los_Angeles"),
    ("denver", "America/Denver"),
    ("phoenix", "America/Phoenix"),
    ("chicago", "America/Chicago"),
    ("dallas", "America/Chicago"),
    ("houston", "America/Chicago"),
    ("austin", "America/Chicago"),
    ("new york", "America/New_York"),
    ("boston", "America/New_York"),
    ("miami", "America/New_York"),
    ("atlanta", "America/New_York"),
    ("london", "Europe/London"),
    ("paris", "Europe/Paris"),
    ("berlin", "Europe/Berlin"),
    ("amsterdam", "Europe/Amsterdam"),
    ("toronto", "America/Toronto"),
    ("vancouver", "America/Vancouver"),
    ("sydney", "Australia/Sydney"),
    ("melbourne", "Australia/Melbourne"),
    ("singapore", "Asia/Singapore"),
    ("tokyo", "Asia/Tokyo"),
    ("bangalore", "Asia/Kolkata"),
    ("mumbai", "Asia/Kolkata"),
)
DEFAULT_TIMEZONE = "UTC"


def _normalize_location_part(part: str) -> str:
    if len(part) == 2 and part.isalpha():
        return part.upper()
    if part.lower() in UPPERCASE_LOCATION_TOKENS:
        return part.upper()
    return " ".join(_capitalize(w) for w in part.split())


def normalize_location(location: str) -> str:
    parts = [" ".join(p.split()) for p in location.split(",")]
    parts = [p for p in parts if p]

    key = ", ".join(parts).lower()
    if key in LOCATION_ALIASES:
        return LOCATION_ALIASES[key]

    return ", ".join(_normalize_location_part(p) for p in parts)


def infer_timezone(location: str) -> str:
    low = location.lower()
    for city, tz in TIMEZONE_BY_CITY:
        if city in low:
            return tz
    return DEFAULT_TIMEZONE


# -----------------------------
# Contact fields
# -----------------------------
_NON_DIGITS = re.compile(r"\D")


def digits_only(value: Any) -> str:
    return _NON_DIGITS.sub("", str(value))


def normalize_phone(phone: Any) -> str:
    text = str(phone).strip()
    digits = digits_only(text)

    if len(digits) == 10:
        return f"+1 ({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+1 ({digits[1:4]}) {digits[4:7]}-{digits[7:]}"
    if text.startswith("+"):
        return text
    return digits


def normalize_email(email: str) -> str:
    return email.strip().lower()


LINKEDIN_HANDLE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"linkedin\.com/in/([a-zA-Z0-9-]+)", re.IGNORECASE),
    re.compile(r"linkedin\.com/pub/([a-zA-Z0-9-]+)", re.IGNORECASE),
    re.compile(r"linkedin\.com/profile/view\?id=([a-zA-Z0-9-]+)", re.IGNORECASE),
)


def normalize_linkedin_url(url: str) -> str:
    """
    Rewrite any recognised profile URL to https://www.linkedin.com/in/<handle>.
    Unrecognised linkedin.com URLs only get their scheme upgraded.
    """
    text = url.strip()
    for pattern in LINKEDIN_HANDLE_PATTERNS:
        m = pattern.search(text)
        if m:
            return f"https://www.linkedin.com/in/{m.group(1)}"

    if "linkedin.com" in text.lower():
        return text.replace("http://", "https://")
    return text


def normalize_domain(domain: str) -> str:
    return domain.strip().lower()


# -----------------------------
# Record
# -----------------------------
def _is_text(v: Any) -> bool:
    return isinstance(v, str) and bool(v.strip())


def normalize_record(raw: Mapping[str, Any]) -> dict[str, Any]:
    """
    Raw heterogeneous record -> canonical-keyed, canonical-valued record.

    Pure and idempotent: normalize_record(normalize_record(x)) == normalize_record(x).
    Values of unexpected types are passed through untouched for the validator to flag.
    """
    if not isinstance(raw, Mapping):
        raise TypeError(f"raw record must be a mapping, got {type(raw).__name__}")

    rec = normalize_keys(raw)

    for name_field in ("first_name", "last_name"):
        if isinstance(rec.get(name_field), str):
            rec[name_field] = rec[name_field].strip()

    if _is_text(rec.get("job_title")):
        rec["job_title"] = normalize_job_title(rec["job_title"])

    if _is_text(rec.get("company_name")):
        rec["company_name"] = normalize_company_name(rec["company_name"])

    if _is_text(rec.get("company_domain")):
        rec["company_domain"] = normalize_domain(rec["company_domain"])

    if _is_text(rec.get("location")):
        rec["location"] = normalize_location(rec["location"])
        if not rec.get("timezone"):
            rec["timezone"] = infer_timezone(rec["location"])

    phone = rec.get("phone")
    if _is_text(phone) or (isinstance(phone, int) and not isinstance(phone, bool)):
        rec["phone"] = normalize_phone(phone)

    if _is_text(rec.get("email")):
        rec["email"] = normalize_email(rec["email"])

    if _is_text(rec.get("linkedin_url")):
        rec["linkedin_url"] = normalize_linkedin_url(rec["linkedin_url"])

    return rec
