from datetime import datetime

from prospect_pipeline.domain.normalize import normalize_record
from prospect_pipeline.domain.validation import completeness_score, validate_batch, validate_record

NOW = datetime(2026, 1, 15, 12, 0, 0)

GOOD = {
    "email": "jane@acme.io",
    "first_name": "Jane",
    "last_name": "Roe",
    "job_title": "VP of Sales",
    "company_name": "Acme",
    "company_domain": "acme.io",
    "linkedin_url": "https://www.linkedin.com/in/jane-roe",
    "phone": "+1 (555) 123-4567",
    "location": "New York, NY, USA",
    "timezone": "America/New_York",
}


def test_complete_record_is_valid():
    v = validate_record(GOOD, now=NOW)
    assert v.is_valid is True
    assert v.errors == []
    assert v.warnings == []
    assert v.completeness_score == 1.0
    assert v.metadata["validated_at"] == NOW.isoformat()


def test_missing_email_is_an_error():
    rec = normalize_record({"firstName": "Jane", "companyName": "Acme"})
    v = validate_record(rec)
    assert v.is_valid is False
    assert "email: Required" in v.errors
    assert "last_name: Required" in v.errors


def test_structural_messages():
    v = validate_record({"email": "not-an-email", "first_name": " ", "last_name": "Roe"})
    assert "email: Invalid email format" in v.errors
    assert "first_name: First name is required" in v.errors


def test_business_rules():
    v = validate_record({**GOOD, "phone": "12345", "company_domain": "not a domain", "linkedin_url": "https://example.com/jane"})
    assert "phone: Phone number must have at least 10 digits" in v.errors
    assert "company_domain: Invalid domain format" in v.errors
    assert "linkedin_url: Invalid LinkedIn URL format" in v.errors


def test_cross_field_rules():
    v = validate_record({**GOOD, "company_domain": "other.com"})
    assert "Email domain (acme.io) doesn't match company domain (other.com)" in v.errors

    v = validate_record({**GOOD, "company_name": None})
    assert "Job title provided but company name is missing" in v.errors


def test_warnings_never_block():
    v = validate_record({"email": "jane@gmail.com", "first_name": "Jane", "last_name": "Roe", "job_title": "Sales Intern", "company_name": "Acme"})
    assert v.is_valid is True
    assert "email: Using free email provider - business email preferred" in v.warnings
    assert "job_title: Job title suggests junior role - may not be decision maker" in v.warnings


def test_low_completeness_warning():
    rec = {"email": "jane@acme.io", "first_name": "Jane", "last_name": "Roe"}
    # 6 of 14 weight points
    assert round(completeness_score(rec), 3) == round(6 / 14, 3)
    v = validate_record(rec)
    assert "Low data completeness score: 43%" in v.warnings


def test_validator_is_deterministic():
    a = validate_record(GOOD, now=NOW)
    b = validate_record(dict(GOOD), now=NOW)
    assert a == b
    # metadata timestamp does not take part in equality
    assert validate_record(GOOD) == a


def test_validate_batch_partitions():
    res = validate_batch([GOOD, {"first_name": "x"}, {**GOOD, "email": "jane@gmail.com", "company_domain": None}])
    assert len(res["valid"]) == 2
    assert len(res["invalid"]) == 1
    assert len(res["warnings"]) == 1
