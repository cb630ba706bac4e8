"""
Vendor service.

Vendors are third-party shops jobs get outsourced to. They are upserted by
name whenever a job is assigned, so the vendor list grows as staff type new
names into the outsource form.
"""

import logging

from core.audit import AuditLogger, AuditAction, compute_changes
from core.exceptions import MissingRequiredFieldError
from core.models import Vendor, VendorUpsert
from core.stores import VendorStore
from utils.user_context import get_current_user_id

logger = logging.getLogger(__name__)


class VendorService:
    """Service for vendor operations."""

    def __init__(self, store: VendorStore, audit: AuditLogger):
        self.store = store
        self.audit = audit

    def upsert(self, data: VendorUpsert) -> Vendor:
        """
        Create a vendor by name, or reuse the existing one.

        A phone given for an existing vendor replaces the stored phone; an
        empty phone leaves it untouched.

        Raises:
            MissingRequiredFieldError: If the name is blank
        """
        name = data.name.strip()
        if not name:
            raise MissingRequiredFieldError("name", "Vendor name is required")
        phone = (data.phone or "").strip() or None

        existing = self.store.get_by_name(name)
        vendor = self.store.upsert(get_current_user_id(), name, phone)

        if existing is None:
            self.audit.log_change(
                entity_type="vendor",
                entity_id=vendor.id,
                action=AuditAction.CREATE,
                changes={"created": {"name": name, "phone": phone}},
            )
        else:
            changes = compute_changes(
                existing.model_dump(mode="json"),
                vendor.model_dump(mode="json"),
            )
            if changes:
                self.audit.log_change(
                    entity_type="vendor",
                    entity_id=vendor.id,
                    action=AuditAction.UPDATE,
                    changes=changes,
                )

        return vendor

    def get_by_name(self, name: str) -> Vendor | None:
        """Vendor by exact name, or None."""
        return self.store.get_by_name(name.strip())

    def list_all(self) -> list[Vendor]:
        """All vendors of the shop, ordered by name."""
        return self.store.list_all()
