"""Static catalog of studio setup sections and their weights."""

from __future__ import annotations

from .models import SetupSectionConfig

SETUP_SECTIONS: tuple[SetupSectionConfig, ...] = (
    # Studio
    SetupSectionConfig(
        section_id="studio_identity",
        name="Brand Identity",
        description="Business name, logo and slogan",
        required_fields=("name", "slug"),
        optional_fields=("logo_url", "slogan", "description"),
        weight=15,
    ),
    SetupSectionConfig(
        section_id="studio_contact",
        name="Contact Information",
        description="Public email, phone and address",
        required_fields=("email",),
        optional_fields=("phone", "address", "website"),
        weight=10,
    ),
    SetupSectionConfig(
        section_id="studio_social",
        name="Online Presence",
        description="Social networks",
        optional_fields=("social_links",),
        weight=5,
    ),
    SetupSectionConfig(
        section_id="studio_hours",
        name="Business Hours",
        description="Days and hours the studio serves clients",
        optional_fields=("business_hours",),
        weight=5,
    ),
    # Business
    SetupSectionConfig(
        section_id="business_pricing",
        name="Pricing and Margins",
        description="Master pricing rules",
        optional_fields=("configurations",),
        weight=15,
    ),
    SetupSectionConfig(
        section_id="business_terms",
        name="Commercial Terms",
        description="Payment plans",
        optional_fields=("commercial_terms",),
        dependencies=("business_pricing",),
        weight=10,
    ),
    SetupSectionConfig(
        section_id="business_payment_methods",
        name="Payment Methods",
        description="How clients can pay",
        optional_fields=("payment_methods",),
        weight=10,
    ),
    SetupSectionConfig(
        section_id="business_bank_accounts",
        name="Bank Accounts",
        description="Account receiving the payments",
        dependencies=("business_payment_methods",),
        weight=5,
    ),
    # Catalog
    SetupSectionConfig(
        section_id="catalog_services",
        name="Services",
        description="Every individual service offered",
        optional_fields=("services",),
        dependencies=("business_pricing",),
        weight=15,
    ),
    SetupSectionConfig(
        section_id="catalog_packages",
        name="Packages",
        description="Bundles of services",
        optional_fields=("packages",),
        dependencies=("catalog_services",),
        weight=10,
    ),
    SetupSectionConfig(
        section_id="catalog_specialties",
        name="Specialties",
        description="Services and packages grouped by event type",
        dependencies=("catalog_services",),
        weight=5,
    ),
    # Team
    SetupSectionConfig(
        section_id="team_members",
        name="Team Members",
        description="Employee and supplier profiles",
        optional_fields=("team_members",),
        weight=5,
    ),
)


def load_active_section_configs() -> list[SetupSectionConfig]:
    """Active sections only. Static for now; kept as a lookup so it can move to storage."""
    return [config for config in SETUP_SECTIONS if config.is_active]
