"""Contact lookup, idempotent resolution and tag management."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.core.merge import merge_metadata, non_null_fields, union_tags
from app.core.phone import normalize_phone
from app.exceptions import DuplicateRecordError, NotFoundError, ValidationError
from app.models.contact import Contact
from app.schemas.webhook import ContactData
from app.services.persistence_service import PersistenceService
from app.utils.time import utcnow

logger = logging.getLogger(__name__)


class ContactService:
    def __init__(
        self,
        db: Session,
        persistence: Optional[PersistenceService] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.db = db
        self.persistence = persistence or PersistenceService(db)
        self.settings = settings or get_settings()

    def normalize_phone(self, phone: Optional[str]) -> Optional[str]:
        return normalize_phone(phone, self.settings.default_country_code)

    def get_contact(self, contact_id: UUID) -> Optional[Contact]:
        return self.db.query(Contact).filter(Contact.id == contact_id).first()

    def get_contact_by_external_id(self, external_id: str) -> Optional[Contact]:
        return self.db.query(Contact).filter(Contact.external_id == external_id).first()

    def get_contact_by_phone(self, phone: str) -> Optional[Contact]:
        """Most recently touched contact with this (normalized) phone."""
        normalized = self.normalize_phone(phone)
        if normalized is None:
            return None
        return (
            self.db.query(Contact)
            .filter(Contact.phone == normalized)
            .order_by(Contact.updated_at.desc())
            .first()
        )

    def resolve(
        self, data: ContactData, seen_at: Optional[datetime] = None
    ) -> Tuple[Contact, bool]:
        """
        Find the contact by external id (else phone) and merge, or create it.
        Returns (contact, created).
        """
        phone = self.normalize_phone(data.phone)
        if not data.external_id and phone is None:
            raise ValidationError("Contact phone is required")

        contact = self._lookup(data.external_id, phone)
        if contact is None:
            if phone is None:
                raise ValidationError("Contact phone is required to create a contact")
            try:
                return self._create(data, phone, seen_at), True
            except DuplicateRecordError:
                # Lost an insert race; the winner's row is now visible.
                contact = self._lookup(data.external_id, phone)
                if contact is None:
                    raise
                logger.info("Contact %s inserted concurrently, merging", contact.id)
        return self._merge(contact, data, phone, seen_at), False

    def add_tags(self, contact_id: UUID, tags: Iterable[str]) -> Contact:
        contact = self._require(contact_id)
        return self.persistence.update_with_retry(
            Contact, {"tags": union_tags(contact.tags, tags)}, {"id": contact_id}
        )

    def remove_tags(self, contact_id: UUID, tags: Iterable[str]) -> Contact:
        contact = self._require(contact_id)
        removed = set(tags)
        remaining = [tag for tag in (contact.tags or []) if tag not in removed]
        return self.persistence.update_with_retry(
            Contact, {"tags": remaining}, {"id": contact_id}
        )

    def _lookup(
        self, external_id: Optional[str], phone: Optional[str]
    ) -> Optional[Contact]:
        if not external_id:
            return self.get_contact_by_phone(phone) if phone else None
        contact = self.get_contact_by_external_id(external_id)
        if contact is not None or phone is None:
            return contact
        # Adopt a contact first seen without a platform id.
        return (
            self.db.query(Contact)
            .filter(Contact.phone == phone, Contact.external_id.is_(None))
            .order_by(Contact.created_at.desc())
            .first()
        )

    def _create(
        self, data: ContactData, phone: str, seen_at: Optional[datetime]
    ) -> Contact:
        contact = self.persistence.insert_with_retry(
            Contact,
            {
                "external_id": data.external_id,
                "phone": phone,
                "name": data.name,
                "email": data.email,
                "profile_pic_url": data.profile_pic_url,
                "status": data.status or "active",
                "tags": union_tags([], data.tags),
                "metadata_": merge_metadata({}, data.metadata),
                "last_interaction_at": seen_at or utcnow(),
            },
        )
        logger.info("Created contact %s (%s)", contact.id, phone)
        return contact

    def _merge(
        self,
        contact: Contact,
        data: ContactData,
        phone: Optional[str],
        seen_at: Optional[datetime],
    ) -> Contact:
        patch = non_null_fields(
            {
                "external_id": data.external_id,
                "phone": phone,
                "name": data.name,
                "email": data.email,
                "profile_pic_url": data.profile_pic_url,
                "status": data.status,
            }
        )
        if data.metadata:
            patch["metadata_"] = merge_metadata(contact.metadata_, data.metadata)
        if data.tags:
            patch["tags"] = union_tags(contact.tags, data.tags)
        patch["last_interaction_at"] = seen_at or utcnow()
        return self.persistence.update_with_retry(Contact, patch, {"id": contact.id})

    def _require(self, contact_id: UUID) -> Contact:
        contact = self.get_contact(contact_id)
        if contact is None:
            raise NotFoundError(f"Contact {contact_id} not found")
        return contact
