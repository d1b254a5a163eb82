"""
Settings service for clinician availability settings.

Reads fall back to AvailabilityConfig.defaults() when a clinician has never
saved settings, so a missing row never blocks availability display.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from core.exceptions import NotFoundError
from core.sentinels import MISSING, MissingType, provided_fields
from models import AvailabilitySettings, Clinician
from shared_types.availability import AvailabilityConfig

logger = logging.getLogger(__name__)


class SettingsService:
    """
    Service class for settings operations.

    Provides centralized access to availability settings with validation
    and documented defaults.
    """

    @staticmethod
    def get_availability_settings(db: Session, clinician_id: int) -> AvailabilityConfig:
        """
        Get the effective availability settings for a clinician.

        Args:
            db: Database session
            clinician_id: Clinician ID

        Returns:
            AvailabilityConfig built from the stored row, or the defaults (in
            the clinician's own zone when known) if no row exists
        """
        settings = db.query(AvailabilitySettings).filter(
            AvailabilitySettings.clinician_id == clinician_id
        ).first()

        if settings is None:
            clinician = db.query(Clinician).filter(Clinician.id == clinician_id).first()
            time_zone = clinician.time_zone if clinician else None
            logger.info(f"No availability settings for clinician {clinician_id}; using defaults")
            return AvailabilityConfig.defaults(time_zone)

        return AvailabilityConfig(
            time_granularity=settings.time_granularity,
            min_notice_days=settings.min_notice_days,
            min_notice_hours=settings.min_notice_hours,
            max_advance_days=settings.max_advance_days,
            buffer_minutes=settings.buffer_minutes,
            time_zone=settings.time_zone,
        )

    @staticmethod
    def upsert_availability_settings(
        db: Session,
        clinician_id: int,
        time_granularity: int | MissingType = MISSING,
        min_notice_days: int | MissingType = MISSING,
        min_notice_hours: Optional[int] | MissingType = MISSING,
        max_advance_days: int | MissingType = MISSING,
        buffer_minutes: int | MissingType = MISSING,
        time_zone: str | MissingType = MISSING,
        commit: bool = True
    ) -> AvailabilityConfig:
        """
        Create or update the single settings row for a clinician.

        Omitted arguments keep their current value (or the default on
        creation); ``min_notice_hours=None`` explicitly clears it.

        Raises:
            NotFoundError: If the clinician does not exist
            pydantic.ValidationError: If the merged settings are invalid
        """
        clinician = db.query(Clinician).filter(Clinician.id == clinician_id).first()
        if not clinician:
            raise NotFoundError(f"Clinician {clinician_id} not found", field="clinician_id")

        current = SettingsService.get_availability_settings(db, clinician_id)
        updates = {
            "time_granularity": time_granularity,
            "min_notice_days": min_notice_days,
            "min_notice_hours": min_notice_hours,
            "max_advance_days": max_advance_days,
            "buffer_minutes": buffer_minutes,
            "time_zone": time_zone,
        }
        merged = current.model_dump(exclude={"is_default"})
        merged.update(provided_fields(updates))

        # Validate before touching the row
        validated = AvailabilityConfig(**merged)

        settings = db.query(AvailabilitySettings).filter(
            AvailabilitySettings.clinician_id == clinician_id
        ).first()
        if settings is None:
            settings = AvailabilitySettings(clinician_id=clinician_id)
            db.add(settings)
            logger.info(f"Creating availability settings for clinician {clinician_id}")

        settings.time_granularity = validated.time_granularity
        settings.min_notice_days = validated.min_notice_days
        settings.min_notice_hours = validated.min_notice_hours
        settings.max_advance_days = validated.max_advance_days
        settings.buffer_minutes = validated.buffer_minutes
        settings.time_zone = validated.time_zone

        if commit:
            db.commit()
        else:
            db.flush()

        return validated
