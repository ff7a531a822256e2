"""Setup completeness scoring.

Fans a studio snapshot out to every active section validator, derives each
section's status, and combines the section scores into a weighted overall
progress. Status is recomputed from scratch on every run; nothing carries
over from previous runs.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Sequence

from .models import (
    AuditAction,
    AuditSource,
    SectionStatus,
    SetupSectionConfig,
    SetupSectionProgress,
    StudioSetupStatus,
    ValidationResult,
)
from .validators import get_section_validator

logger = logging.getLogger(__name__)

FULLY_CONFIGURED_THRESHOLD = 90


class StudioNotFoundError(LookupError):
    """The studio to validate does not exist."""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def derive_section_status(result: ValidationResult) -> SectionStatus:
    """Errors win over score; otherwise 100 → completed, >0 → in progress, 0 → pending."""
    if result.errors:
        return SectionStatus.ERROR
    if result.completion_percentage == 100:
        return SectionStatus.COMPLETED
    if result.completion_percentage > 0:
        return SectionStatus.IN_PROGRESS
    return SectionStatus.PENDING


def compute_overall_progress(
    sections: Sequence[SetupSectionProgress],
    configs: Sequence[SetupSectionConfig],
) -> int:
    """Weighted mean of section percentages, 0 when there is nothing to weigh."""
    weights = {config.section_id: config.weight for config in configs}
    total_weight = 0
    weighted = 0.0
    for section in sections:
        weight = weights.get(section.section_id, 0)
        total_weight += weight
        weighted += weight * section.completion_percentage / 100
    if total_weight <= 0:
        return 0
    return max(0, min(100, round(100 * weighted / total_weight)))


class SetupCompletenessAggregator:
    """Runs all active validators for one studio and persists the outcome.

    `repository` is the persistence collaborator. It must provide the async
    methods `load_studio_snapshot`, `load_active_section_configs`,
    `upsert_setup_status`, `replace_section_progress` and `append_audit_log`.
    """

    def __init__(self, repository, clock: Callable[[], datetime] = utcnow):
        self.repository = repository
        self.clock = clock

    async def run(self, studio_id: str, source: AuditSource = AuditSource.SYSTEM) -> StudioSetupStatus:
        snapshot = await self.repository.load_studio_snapshot(studio_id)
        if snapshot is None:
            raise StudioNotFoundError(f"Studio not found: {studio_id}")

        configs = await self.repository.load_active_section_configs()
        sections = await self.evaluate(snapshot, configs)

        overall = compute_overall_progress(sections, configs)
        fully_configured = overall >= FULLY_CONFIGURED_THRESHOLD
        validated_at = self.clock()

        status = await self.repository.upsert_setup_status(studio_id, overall, fully_configured, validated_at)
        await self.repository.replace_section_progress(status.id, sections)

        logger.info(
            "Validated studio %s: %d%% across %d sections (fully configured: %s)",
            studio_id, overall, len(sections), fully_configured,
        )
        await self._audit(studio_id, sections, overall, fully_configured, source)

        return status.model_copy(update={"sections": sections})

    async def evaluate(
        self,
        snapshot: Any,
        configs: Sequence[SetupSectionConfig],
    ) -> list[SetupSectionProgress]:
        """Score every section concurrently, in catalog order."""
        return list(await asyncio.gather(
            *(self._evaluate_section(config, snapshot) for config in configs)
        ))

    async def _evaluate_section(self, config: SetupSectionConfig, snapshot: Any) -> SetupSectionProgress:
        try:
            validator = get_section_validator(config)
            result = await asyncio.to_thread(validator.validate, snapshot)
        except Exception as exc:
            logger.error("Validation of section %s failed: %s", config.section_id, exc, exc_info=True)
            return SetupSectionProgress(
                section_id=config.section_id,
                name=config.name,
                status=SectionStatus.ERROR,
                completion_percentage=0,
                completed_fields=[],
                missing_fields=list(config.required_fields),
                errors=[f"Error validating section: {exc}"],
                last_updated_at=self.clock(),
            )

        status = derive_section_status(result)
        now = self.clock()
        return SetupSectionProgress(
            section_id=config.section_id,
            name=config.name,
            status=status,
            completion_percentage=result.completion_percentage,
            completed_fields=result.completed_fields,
            missing_fields=result.missing_fields,
            errors=result.errors,
            completed_at=now if status is SectionStatus.COMPLETED else None,
            last_updated_at=now,
        )

    async def _audit(
        self,
        studio_id: str,
        sections: Sequence[SetupSectionProgress],
        overall: int,
        fully_configured: bool,
        source: AuditSource,
    ) -> None:
        if any(s.status is SectionStatus.ERROR for s in sections):
            action = AuditAction.ERROR
        elif fully_configured:
            action = AuditAction.COMPLETED
        else:
            action = AuditAction.UPDATED

        details = {
            "overall_progress": overall,
            "sections": {s.section_id: s.status.value for s in sections},
        }
        try:
            await self.repository.append_audit_log(studio_id, action, source, details=details)
        except Exception as exc:
            logger.warning("Could not write setup audit log for studio %s: %s", studio_id, exc)
