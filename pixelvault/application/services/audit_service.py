from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple
import logging

from ..ports.blob_store import BlobStore
from ..ports.image_repo import ImageRepository
from ..ports.user_repo import UserRepository
from ..ports.category_repo import CategoryRepository
from ..ports.audit_logger import AuditLogger
from ...db.models.media.image import UploadStatus
from ...exceptions import PixelVaultError

logger = logging.getLogger(__name__)


@dataclass
class AuditReport:
    orphaned_blobs: List[str] = field(default_factory=list)
    missing_blobs: List[str] = field(default_factory=list)
    stale_records: List[str] = field(default_factory=list)
    # id -> (recorded, expected)
    user_drift: Dict[str, Tuple[int, int]] = field(default_factory=dict)
    category_drift: Dict[str, Tuple[int, int]] = field(default_factory=dict)
    repaired: bool = False

    @property
    def clean(self) -> bool:
        return not (self.orphaned_blobs or self.missing_blobs or self.stale_records
                    or self.user_drift or self.category_drift)


@dataclass
class StorageAuditService:
    """Reconciles the blob store with image records and usage counters.

    Meant to be run out of band (see ``audit_storage.py``) while uploads keep
    running. Nothing younger than ``stale_after`` is touched: unreferenced
    blobs are only orphans once their file is that old, records that are not
    ``completed`` only become stale at that age, and the counters of an owner
    or category with such an in-flight record are not compared at all.
    """
    blob_store: BlobStore
    image_repo: ImageRepository
    user_repo: UserRepository
    category_repo: CategoryRepository
    audit: Optional[AuditLogger] = None
    stale_after: timedelta = timedelta(hours=1)

    def run(self, repair: bool = False, now: Optional[datetime] = None) -> AuditReport:
        now = now or datetime.utcnow()
        cutoff = now - self.stale_after
        report = AuditReport()
        # Records before blobs: a blob written after this read is unreferenced but young
        images = self.image_repo.list_all()
        locators = set(self.blob_store.list_locators())

        referenced = {i.file_path for i in images}
        report.orphaned_blobs = sorted(
            locator for locator in locators - referenced if self._older_than(locator, cutoff)
        )

        completed = [i for i in images if i.upload_status == UploadStatus.COMPLETED.value]
        report.missing_blobs = sorted(i.id for i in completed if i.file_path not in locators)
        pending = [i for i in images if i.upload_status != UploadStatus.COMPLETED.value]
        stale = [i for i in pending if i.created_at < cutoff]
        report.stale_records = sorted(i.id for i in stale)

        # An in-flight upload charges its counters before it is marked completed
        in_flight = [i for i in pending if i.created_at >= cutoff and i.upload_status != UploadStatus.FAILED.value]
        busy_users = {i.owner_id for i in in_flight}
        busy_categories = {i.category_id for i in in_flight}
        if in_flight:
            logger.info(f"Storage audit: skipping counters touched by {len(in_flight)} upload(s) in flight")

        # Records whose blob is missing are failed by a repair, so they stop counting
        missing = set(report.missing_blobs) if repair else set()
        usage: Dict[str, int] = defaultdict(int)
        counts: Dict[str, int] = defaultdict(int)
        for image in completed:
            if image.id in missing:
                continue
            usage[image.owner_id] += image.size
            counts[image.category_id] += 1

        for user in self.user_repo.list_all():
            if user.id not in busy_users and user.storage_used != usage.get(user.id, 0):
                report.user_drift[user.id] = (user.storage_used, usage.get(user.id, 0))
        for category in self.category_repo.list_all():
            if category.id not in busy_categories and category.image_count != counts.get(category.id, 0):
                report.category_drift[category.id] = (category.image_count, counts.get(category.id, 0))

        if not report.clean:
            logger.warning(
                f"Storage audit: {len(report.orphaned_blobs)} orphaned blob(s), {len(report.missing_blobs)} missing blob(s), "
                f"{len(report.stale_records)} stale record(s), {len(report.user_drift)} user and "
                f"{len(report.category_drift)} category counter(s) out of sync"
            )
        if repair:
            self._repair(report, stale)
        if self.audit:
            self.audit.log("storage_audit", success=report.clean, details={
                "orphaned_blobs": report.orphaned_blobs,
                "missing_blobs": report.missing_blobs,
                "stale_records": report.stale_records,
                "user_drift": report.user_drift,
                "category_drift": report.category_drift,
                "repaired": report.repaired,
            })
        return report

    def _older_than(self, locator: str, cutoff: datetime) -> bool:
        try:
            modified = self.blob_store.modified_at(locator)
        except PixelVaultError as exc:
            logger.error(f"Could not stat blob {locator}: {exc}")
            return False
        return modified is not None and modified < cutoff

    def _repair(self, report: AuditReport, stale) -> None:
        for locator in report.orphaned_blobs:
            try:
                self.blob_store.delete(locator)
            except PixelVaultError as exc:
                logger.error(f"Could not delete orphaned blob {locator}: {exc}")
        for image in stale:
            try:
                self.blob_store.delete(image.file_path)
                self.image_repo.delete(image.id)
            except PixelVaultError as exc:
                logger.error(f"Could not remove stale record {image.id}: {exc}")
        for image_id in report.missing_blobs:
            try:
                self.image_repo.mark_failed(image_id, "blob missing")
            except PixelVaultError as exc:
                logger.error(f"Could not mark image {image_id} failed: {exc}")
        # Compare-and-set, so a delta applied since the snapshot is never overwritten
        for user_id, (recorded, expected) in report.user_drift.items():
            if not self.user_repo.set_storage_used(user_id, expected, only_if=recorded):
                logger.warning(f"Storage counter of user {user_id} changed during the audit, left as is")
        for category_id, (recorded, expected) in report.category_drift.items():
            if not self.category_repo.set_image_count(category_id, expected, only_if=recorded):
                logger.warning(f"Image count of category {category_id} changed during the audit, left as is")
        report.repaired = True
        logger.info("Storage audit repair completed")
