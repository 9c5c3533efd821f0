# prospect_pipeline/domain/validation.py
from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic_core import PydanticCustomError

from ..models import utcnow
from .normalize import digits_only
from .types import ValidationResult

VALIDATION_VERSION = "1.0"

FREE_EMAIL_PROVIDERS: frozenset[str] = frozenset({
    "gmail.com", "yahoo.com", "hotmail.com", "outlook.com", "aol.com",
    "icloud.com", "mail.com", "protonmail.com", "yandex.com", "gmx.com",
    "live.com", "msn.com", "me.com", "fastmail.com", "tutanota.com",
    "zoho.com", "mail.ru", "qq.com", "163.com", "126.com",
})

# weights for the completeness score
COMPLETENESS_WEIGHTS: dict[str, float] = {
    "email": 2,
    "first_name": 2,
    "last_name": 2,
    "job_title": 1.5,
    "company_name": 1.5,
    "linkedin_url": 1.5,
    "phone": 1,
    "location": 1,
    "company_domain": 1,
    "timezone": 0.5,
}
LOW_COMPLETENESS_THRESHOLD = 0.5

SENIOR_TITLE_KEYWORDS = (
    "ceo", "cto", "cfo", "cmo", "coo", "cro",
    "founder", "co-founder", "owner", "president",
    "vp", "vice president", "director", "head of",
    "manager", "lead", "senior", "principal",
)
JUNIOR_TITLE_KEYWORDS = (
    "intern", "assistant", "junior", "trainee",
    "student", "contractor", "freelance",
)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

LINKEDIN_URL_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^https?://(www\.)?linkedin\.com/in/[a-zA-Z0-9-]+/?$"),
    re.compile(r"^https?://(www\.)?linkedin\.com/pub/[a-zA-Z0-9-]+/?$"),
    re.compile(r"^https?://(www\.)?linkedin\.com/profile/view\?id=[a-zA-Z0-9-]+$"),
)

DOMAIN_PATTERN = re.compile(r"^([a-zA-Z0-9-]+\.)+[a-zA-Z]{2,}$")
_PROTOCOL = re.compile(r"^https?://")
_WWW = re.compile(r"^www\.")


class ProspectSchema(BaseModel):
    """Structural contract of a canonical record. Extra keys are allowed."""

    model_config = ConfigDict(extra="allow")

    email: str
    first_name: str
    last_name: str
    job_title: str | None = None
    company_name: str | None = None
    company_domain: str | None = None
    linkedin_url: str | None = None
    phone: str | None = None
    location: str | None = None
    timezone: str | None = None
    source: str | None = None
    enrichment_data: Any = None

    @field_validator("email")
    @classmethod
    def _email_shape(cls, v: str) -> str:
        if not EMAIL_PATTERN.match(v):
            raise PydanticCustomError("invalid_email", "Invalid email format")
        return v

    @field_validator("first_name")
    @classmethod
    def _first_name_present(cls, v: str) -> str:
        if not v.strip():
            raise PydanticCustomError("required", "First name is required")
        return v

    @field_validator("last_name")
    @classmethod
    def _last_name_present(cls, v: str) -> str:
        if not v.strip():
            raise PydanticCustomError("required", "Last name is required")
        return v


def _schema_errors(record: Mapping[str, Any]) -> list[str]:
    try:
        ProspectSchema.model_validate(dict(record))
    except ValidationError as exc:
        out: list[str] = []
        for err in exc.errors():
            path = ".".join(str(p) for p in err["loc"])
            if err["type"] == "missing":
                msg = "Required"
            elif err["type"] == "string_type":
                msg = "Expected string"
            else:
                msg = err["msg"]
            out.append(f"{path}: {msg}")
        return out
    return []


def email_domain(email: str) -> str | None:
    if "@" not in email:
        return None
    domain = email.split("@", 1)[1].strip().lower()
    return domain or None


def bare_domain(domain: str) -> str:
    return _WWW.sub("", _PROTOCOL.sub("", domain.strip()))


def is_free_email(email: str) -> bool:
    return email_domain(email) in FREE_EMAIL_PROVIDERS


def validate_linkedin_url(url: str) -> str | None:
    if any(p.match(url) for p in LINKEDIN_URL_PATTERNS):
        return None
    return "Invalid LinkedIn URL format"


def validate_phone(phone: str) -> str | None:
    digits = digits_only(phone)
    if len(digits) < 10:
        return "Phone number must have at least 10 digits"
    if len(digits) > 15:
        return "Phone number seems too long"
    return None


def validate_company_domain(domain: str) -> str | None:
    clean = _PROTOCOL.sub("", domain)
    if DOMAIN_PATTERN.match(clean):
        return None
    return "Invalid domain format"


def title_seniority_warning(job_title: str) -> str | None:
    low = job_title.lower()
    senior = any(k in low for k in SENIOR_TITLE_KEYWORDS)
    junior = any(k in low for k in JUNIOR_TITLE_KEYWORDS)
    if junior and not senior:
        return "Job title suggests junior role - may not be decision maker"
    return None


def _filled(value: Any) -> bool:
    return value is not None and str(value).strip() != ""


def completeness_score(record: Mapping[str, Any]) -> float:
    total = sum(COMPLETENESS_WEIGHTS.values())
    filled = sum(w for field, w in COMPLETENESS_WEIGHTS.items() if _filled(record.get(field)))
    return filled / total


def cross_field_errors(record: Mapping[str, Any]) -> list[str]:
    errors: list[str] = []

    email = record.get("email")
    company_domain = record.get("company_domain")
    if isinstance(email, str) and isinstance(company_domain, str) and company_domain:
        e_dom = email_domain(email)
        c_dom = bare_domain(company_domain).lower()
        if e_dom and e_dom not in c_dom and c_dom not in e_dom and e_dom not in FREE_EMAIL_PROVIDERS:
            errors.append(f"Email domain ({e_dom}) doesn't match company domain ({c_dom})")

    if record.get("linkedin_url") and (not record.get("first_name") or not record.get("last_name")):
        errors.append("LinkedIn URL provided but name is missing")

    if record.get("job_title") and not record.get("company_name"):
        errors.append("Job title provided but company name is missing")

    return errors


def validate_record(record: Mapping[str, Any], *, now: datetime | None = None) -> ValidationResult:
    """
    Canonical record -> ValidationResult. Never raises for bad data;
    problems come back as error/warning strings. Warnings never block.

    `now` only stamps metadata.validated_at; pass it for byte-identical results.
    """
    errors = _schema_errors(record)
    warnings: list[str] = []

    linkedin_url = record.get("linkedin_url")
    if isinstance(linkedin_url, str) and linkedin_url:
        err = validate_linkedin_url(linkedin_url)
        if err:
            errors.append(f"linkedin_url: {err}")

    email = record.get("email")
    if isinstance(email, str) and email:
        if email_domain(email) is None:
            warnings.append("email: Invalid email format")
        elif is_free_email(email):
            warnings.append("email: Using free email provider - business email preferred")

    phone = record.get("phone")
    if isinstance(phone, str) and phone:
        err = validate_phone(phone)
        if err:
            errors.append(f"phone: {err}")

    company_domain = record.get("company_domain")
    if isinstance(company_domain, str) and company_domain:
        err = validate_company_domain(company_domain)
        if err:
            errors.append(f"company_domain: {err}")

    score = completeness_score(record)
    if score < LOW_COMPLETENESS_THRESHOLD:
        warnings.append(f"Low data completeness score: {score * 100:.0f}%")

    job_title = record.get("job_title")
    if isinstance(job_title, str) and job_title:
        warn = title_seniority_warning(job_title)
        if warn:
            warnings.append(f"job_title: {warn}")

    errors.extend(cross_field_errors(record))

    return ValidationResult(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        completeness_score=score,
        metadata={
            "validated_at": (now or utcnow()).isoformat(),
            "validation_version": VALIDATION_VERSION,
        },
    )


def validate_batch(records: list[Mapping[str, Any]]) -> dict[str, list[dict[str, Any]]]:
    results: dict[str, list[dict[str, Any]]] = {"valid": [], "invalid": [], "warnings": []}
    for record in records:
        v = validate_record(record)
        if v.is_valid:
            results["valid"].append({"record": record, "validation": v})
            if v.warnings:
                results["warnings"].append({"record": record, "warnings": v.warnings})
        else:
            results["invalid"].append({"record": record, "validation": v})
    return results
