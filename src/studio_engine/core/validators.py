"""Setup section validators.

Each validator inspects a raw studio snapshot (a nested mapping produced by
the repository) and reports how complete and how correct one section of the
studio setup is. Completeness and correctness are scored independently:
a present-but-malformed field counts as completed and also yields an error.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any, Iterable

from pydantic import HttpUrl, TypeAdapter, ValidationError

from .models import SetupSectionConfig, ValidationResult

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^(\+\d{1,3}[- ]?)?\d{10}$")

PRICING_CONFIG_TYPES = {"pricing", "pricing_margin"}

_URL_ADAPTER = TypeAdapter(HttpUrl)


class UnknownSectionError(LookupError):
    """No validator is registered for a section id."""


def get_nested_value(data: Any, path: str) -> Any:
    """Follow a dotted path through nested mappings; None when any hop is missing."""
    current = data
    for key in path.split("."):
        if isinstance(current, Mapping) and key in current:
            current = current[key]
        else:
            return None
    return current


def is_present(value: Any) -> bool:
    """None, blank strings and empty collections count as absent."""
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    if isinstance(value, (Sequence, Mapping, set)):
        return len(value) > 0
    return True


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_valid_url(url: str) -> bool:
    try:
        _URL_ADAPTER.validate_python(url)
    except ValidationError:
        return False
    return True


def is_valid_email(email: str) -> bool:
    return EMAIL_PATTERN.match(email) is not None


def is_valid_phone(phone: str) -> bool:
    return PHONE_PATTERN.match(re.sub(r"\s", "", phone)) is not None


class BaseValidator:
    """Common helpers for all section validators."""

    def validate(self, snapshot: Any) -> ValidationResult:
        raise NotImplementedError

    @staticmethod
    def check_field(snapshot: Any, path: str, required: bool = False) -> bool:
        # `required` only matters to the caller: an absent required field is a
        # failure, an absent optional one is simply left out of the completed set.
        return is_present(get_nested_value(snapshot, path))

    @staticmethod
    def calculate_completion_percentage(completed: Sequence[str], total: Sequence[str]) -> int:
        if not total:
            return 100
        return round(100 * len(completed) / len(total))

    def partition_fields(
        self, snapshot: Any, fields: Iterable[str], required: bool = False
    ) -> tuple[list[str], list[str]]:
        """Split `fields` into (present, absent)."""
        completed: list[str] = []
        missing: list[str] = []
        for field in fields:
            if self.check_field(snapshot, field, required):
                completed.append(field)
            else:
                missing.append(field)
        return completed, missing


class IdentityValidator(BaseValidator):
    """Business name, slug and branding."""

    required_fields = ("name", "slug")
    optional_fields = ("logo_url", "slogan", "description")

    def validate(self, snapshot: Any) -> ValidationResult:
        required_done, missing = self.partition_fields(snapshot, self.required_fields, required=True)
        optional_done, _ = self.partition_fields(snapshot, self.optional_fields)

        percentage = self.calculate_completion_percentage(required_done, self.required_fields)
        bonus = round(len(optional_done) / len(self.optional_fields) * 20)
        percentage = min(100, percentage + bonus)

        errors: list[str] = []
        name = get_nested_value(snapshot, "name")
        if isinstance(name, str) and name and len(name) < 3:
            errors.append("Studio name must be at least 3 characters long")

        slug = get_nested_value(snapshot, "slug")
        if isinstance(slug, str) and slug and not SLUG_PATTERN.match(slug):
            errors.append("Slug may only contain lowercase letters, digits and hyphens")

        return ValidationResult(
            is_valid=not missing and not errors,
            completion_percentage=percentage,
            completed_fields=required_done + optional_done,
            missing_fields=missing,
            errors=errors,
        )


class ContactValidator(BaseValidator):
    """Public email, phone, address and website."""

    required_fields = ("email",)
    optional_fields = ("phone", "address", "website")

    def validate(self, snapshot: Any) -> ValidationResult:
        required_done, missing = self.partition_fields(snapshot, self.required_fields, required=True)
        optional_done, _ = self.partition_fields(snapshot, self.optional_fields)

        percentage = self.calculate_completion_percentage(required_done, self.required_fields)
        percentage = min(100, percentage + round(len(optional_done) / len(self.optional_fields) * 30))

        errors: list[str] = []
        email = get_nested_value(snapshot, "email")
        if isinstance(email, str) and email and not is_valid_email(email):
            errors.append("Email address format is invalid")

        phone = get_nested_value(snapshot, "phone")
        if isinstance(phone, str) and phone and not is_valid_phone(phone):
            errors.append("Phone number format is invalid")

        website = get_nested_value(snapshot, "website")
        if isinstance(website, str) and website and not is_valid_url(website):
            errors.append("Website URL format is invalid")

        if errors:
            percentage = min(95, percentage)

        return ValidationResult(
            is_valid=not missing and not errors,
            completion_percentage=percentage,
            completed_fields=required_done + optional_done,
            missing_fields=missing,
            errors=errors,
        )


class SocialPresenceValidator(BaseValidator):
    """Social network links. Two active links make the section complete."""

    def validate(self, snapshot: Any) -> ValidationResult:
        links = get_nested_value(snapshot, "social_links")
        completed: list[str] = []
        errors: list[str] = []
        percentage = 0

        if isinstance(links, list):
            active = [
                link for link in links
                if isinstance(link, Mapping)
                and link.get("is_active") is True
                and isinstance(link.get("url"), str)
                and link["url"].strip()
            ]
            if len(active) >= 2:
                percentage = 100
            elif len(active) == 1:
                percentage = 50
            if active:
                completed.append("social_links")

            for link in links:
                if not isinstance(link, Mapping):
                    continue
                url = link.get("url")
                if isinstance(url, str) and not is_valid_url(url):
                    platform = link.get("platform")
                    platform = platform if isinstance(platform, str) and platform else "unknown"
                    errors.append(f"Invalid URL for social network: {platform}")

        return ValidationResult(
            is_valid=not errors,
            completion_percentage=percentage,
            completed_fields=completed,
            missing_fields=[],
            errors=errors,
        )


class PricingValidator(BaseValidator):
    """The studio's pricing configuration entry.

    Three sub-fields each contribute a third of the score: the base margin
    (`utilidad_servicio`, must be > 0), the discount headroom (`sobreprecio`)
    and the maximum discount (`descuento_maximo`), both non-negative.
    A commission of 100% or more is reported as an extra error on top of the
    three sub-field checks; it does not change the score.
    """

    def validate(self, snapshot: Any) -> ValidationResult:
        completed: list[str] = []
        missing: list[str] = []
        errors: list[str] = []
        percentage = 0

        configurations = get_nested_value(snapshot, "configurations")
        entry = None
        if isinstance(configurations, list):
            entry = next(
                (
                    item for item in configurations
                    if isinstance(item, Mapping) and item.get("type") in PRICING_CONFIG_TYPES
                ),
                None,
            )
            if entry is None:
                missing.append("pricing_config")
        else:
            missing.append("configurations")

        if entry is not None:
            completed.append("configurations")
            values = entry.get("values")
            values = values if isinstance(values, Mapping) else {}
            validated = 0

            base_margin = values.get("utilidad_servicio")
            if is_number(base_margin) and base_margin > 0:
                validated += 1
            else:
                errors.append("Base profit margin must be greater than 0")

            for key in ("sobreprecio", "descuento_maximo"):
                value = values.get(key)
                if is_number(value) and value >= 0:
                    validated += 1
                else:
                    missing.append(key)

            commission = values.get("comision_venta")
            if is_number(commission) and commission >= 100:
                errors.append("Sales commission must be below 100%")

            percentage = round(validated / 3 * 100)

        return ValidationResult(
            is_valid=not errors and percentage >= 80,
            completion_percentage=percentage,
            completed_fields=completed,
            missing_fields=missing,
            errors=errors,
        )


class CommercialTermsValidator(BaseValidator):
    """Payment plans (discount and advance percentages)."""

    def validate(self, snapshot: Any) -> ValidationResult:
        completed: list[str] = []
        missing: list[str] = []
        errors: list[str] = []
        percentage = 0

        terms = get_nested_value(snapshot, "commercial_terms")
        if not isinstance(terms, list):
            missing.append("commercial_terms")
        else:
            active = [t for t in terms if isinstance(t, Mapping) and t.get("status") == "active"]
            if not active:
                missing.append("active_commercial_terms")
                percentage = 25
            else:
                completed.append("commercial_terms")
                percentage = 100
                named = 0
                for term in active:
                    name = term.get("name")
                    if isinstance(name, str) and name.strip():
                        named += 1
                    label = name if isinstance(name, str) and name.strip() else "unnamed term"

                    discount = term.get("discount_percentage")
                    if is_number(discount) and not 0 <= discount <= 100:
                        errors.append(f"Invalid discount percentage in: {label}")

                    advance = term.get("advance_percentage")
                    if is_number(advance) and not 0 <= advance <= 100:
                        errors.append(f"Invalid advance percentage in: {label}")

                if named == 0:
                    errors.append("No valid commercial terms are configured")
                    percentage = 50

        return ValidationResult(
            is_valid=not errors and percentage >= 80,
            completion_percentage=percentage,
            completed_fields=completed,
            missing_fields=missing,
            errors=errors,
        )


class ServicesValidator(BaseValidator):
    """The service catalog. Each valid service adds 10 points over a base of 50."""

    def validate(self, snapshot: Any) -> ValidationResult:
        completed: list[str] = []
        missing: list[str] = []
        errors: list[str] = []
        percentage = 0

        services = get_nested_value(snapshot, "services")
        if not isinstance(services, list) or not services:
            missing.append("services")
        else:
            active = [s for s in services if isinstance(s, Mapping) and s.get("status") == "active"]
            if not active:
                missing.append("active_services")
                percentage = 10
            else:
                completed.append("services")
                valid = 0
                for service in active:
                    ok = True
                    name = service.get("name")
                    if not isinstance(name, str) or not name.strip():
                        errors.append("Service has no name configured")
                        ok = False

                    price = service.get("price")
                    if not is_number(price) or price <= 0:
                        label = name if isinstance(name, str) and name.strip() else "unnamed"
                        errors.append(f"Invalid price for service: {label}")
                        ok = False

                    if ok:
                        valid += 1

                percentage = min(100, 50 + 10 * valid) if valid else 25

        return ValidationResult(
            is_valid=not errors and percentage >= 50,
            completion_percentage=percentage,
            completed_fields=completed,
            missing_fields=missing,
            errors=errors,
        )


class FieldPresenceValidator(BaseValidator):
    """Scores a section purely by which of its catalog fields are populated."""

    def __init__(self, config: SetupSectionConfig):
        self.config = config

    def validate(self, snapshot: Any) -> ValidationResult:
        required_done, missing = self.partition_fields(snapshot, self.config.required_fields, required=True)
        optional_done, optional_missing = self.partition_fields(snapshot, self.config.optional_fields)

        if self.config.required_fields:
            percentage = self.calculate_completion_percentage(required_done, self.config.required_fields)
        else:
            percentage = self.calculate_completion_percentage(optional_done, self.config.optional_fields)

        return ValidationResult(
            is_valid=not missing,
            completion_percentage=percentage,
            completed_fields=required_done + optional_done,
            missing_fields=missing + optional_missing,
            errors=[],
        )


class UnimplementedSectionValidator(BaseValidator):
    """Placeholder for sections without scoring rules yet. Always reports 0%."""

    def __init__(self, config: SetupSectionConfig):
        self.config = config

    def validate(self, snapshot: Any) -> ValidationResult:
        return ValidationResult(
            is_valid=False,
            completion_percentage=0,
            completed_fields=[],
            missing_fields=[self.config.section_id],
            errors=[],
        )


_DEDICATED_VALIDATORS: dict[str, type[BaseValidator]] = {
    "studio_identity": IdentityValidator,
    "studio_contact": ContactValidator,
    "studio_social": SocialPresenceValidator,
    "business_pricing": PricingValidator,
    "business_terms": CommercialTermsValidator,
    "catalog_services": ServicesValidator,
}

_FIELD_PRESENCE_SECTIONS = {
    "studio_hours",
    "business_payment_methods",
    "catalog_packages",
    "team_members",
}

_UNIMPLEMENTED_SECTIONS = {
    "business_bank_accounts",
    "catalog_specialties",
}


def get_section_validator(config: SetupSectionConfig) -> BaseValidator:
    """Resolve the validator for a section; unknown ids fail loudly."""
    section_id = config.section_id
    if section_id in _DEDICATED_VALIDATORS:
        return _DEDICATED_VALIDATORS[section_id]()
    if section_id in _FIELD_PRESENCE_SECTIONS:
        return FieldPresenceValidator(config)
    if section_id in _UNIMPLEMENTED_SECTIONS:
        logger.debug("Section %s has no scoring rules yet", section_id)
        return UnimplementedSectionValidator(config)
    raise UnknownSectionError(f"No validator registered for section {section_id!r}")
