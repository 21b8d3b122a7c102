"""Channels, sectors and organization members, upserted by platform id."""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.core.merge import non_null_fields
from app.exceptions import DuplicateRecordError
from app.models.organization import Channel, OrganizationMember, Sector
from app.schemas.webhook import ChannelData, OrganizationMemberData, SectorData
from app.services.persistence_service import PersistenceService

logger = logging.getLogger(__name__)


class OrganizationService:
    def __init__(
        self, db: Session, persistence: Optional[PersistenceService] = None
    ) -> None:
        self.db = db
        self.persistence = persistence or PersistenceService(db)

    def get_by_external_id(self, model: Any, external_id: str) -> Optional[Any]:
        return self.db.query(model).filter(model.external_id == external_id).first()

    def resolve_channel(self, data: Optional[ChannelData]) -> Optional[Channel]:
        if data is None:
            return None
        return self._upsert(
            Channel,
            data.external_id,
            {
                "channel_type": data.channel_type,
                "phone_number": data.phone_number,
                "name": data.name,
            },
        )

    def resolve_sector(self, data: Optional[SectorData]) -> Optional[Sector]:
        if data is None:
            return None
        return self._upsert(
            Sector,
            data.external_id,
            {
                "name": data.name,
                "is_default": data.is_default,
                "order_position": data.order_position,
            },
        )

    def resolve_member(
        self, data: Optional[OrganizationMemberData]
    ) -> Optional[OrganizationMember]:
        if data is None:
            return None
        return self._upsert(
            OrganizationMember,
            data.external_id,
            {"name": data.name, "email": data.email, "is_active": True},
        )

    def _upsert(self, model: Any, external_id: str, values: dict[str, Any]) -> Any:
        """Create on first sight; afterwards only non-null fields overwrite."""
        patch = non_null_fields(values)
        existing = self.get_by_external_id(model, external_id)
        if existing is None:
            try:
                row = self.persistence.insert_with_retry(
                    model,
                    {
                        "external_id": external_id,
                        "metadata_": {"source": "webhook"},
                        **patch,
                    },
                )
            except DuplicateRecordError:
                existing = self.get_by_external_id(model, external_id)
                if existing is None:
                    raise
            else:
                logger.info("Created %s %s", model.__tablename__, external_id)
                return row
        if not patch:
            return existing
        return self.persistence.update_with_retry(model, patch, {"id": existing.id})
