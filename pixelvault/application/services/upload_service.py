from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Tuple, Union
import logging
import time

from ..ports.blob_store import BlobStore, StoredBlob
from ..ports.image_repo import ImageRepository, ImageDto, NewImage
from ..ports.audit_logger import AuditLogger
from .category_service import CategoryTracker
from .quota_service import QuotaAccountant
from ...db.models.media.image import UploadStatus
from ...exceptions import BlobStoreError, CleanupFailure, PixelVaultError, ValidationError

logger = logging.getLogger(__name__)

REASON_TOO_LARGE = "file too large"
REASON_STORAGE = "storage error"

MAX_TAG_LENGTH = 50
MAX_ALT_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 1000


@dataclass
class UploadPolicy:
    max_file_size: int
    max_files_per_batch: int
    allowed_mime_prefix: str = "image/"

    @classmethod
    def from_settings(cls, settings) -> "UploadPolicy":
        return cls(
            max_file_size=settings.MAX_FILE_SIZE,
            max_files_per_batch=settings.MAX_FILES_PER_BATCH,
            allowed_mime_prefix=settings.ALLOWED_MIME_PREFIX,
        )

    def allows_type(self, mime_type: Optional[str]) -> bool:
        return bool(mime_type) and mime_type.lower().startswith(self.allowed_mime_prefix)


@dataclass
class IncomingFile:
    name: str
    mime_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class FileFailure:
    file_name: str
    reason: str
    orphaned_locator: Optional[str] = None


@dataclass
class BatchResult:
    completed_images: List[ImageDto] = field(default_factory=list)
    failures: List[FileFailure] = field(default_factory=list)
    unprocessed: List[str] = field(default_factory=list)
    timed_out: bool = False

    @property
    def status(self) -> str:
        if not self.completed_images:
            return "failed"
        if self.failures or self.unprocessed:
            return "partial"
        return "success"

    @property
    def completed_bytes(self) -> int:
        return sum(image.size for image in self.completed_images)


def normalize_tags(tags: Union[str, Iterable[str], None]) -> List[str]:
    """Split, trim, lower-case and de-duplicate tags, keeping first-seen order."""
    if tags is None:
        return []
    raw = tags.split(",") if isinstance(tags, str) else list(tags)
    seen = []
    for tag in raw:
        clean = (tag or "").strip().lower()
        if clean and clean not in seen:
            seen.append(clean)
    return seen


@dataclass
class UploadPipeline:
    """Ingests a batch of files into the blob store and metadata records.

    Batch-level checks (non-empty, file count, category, MIME type, metadata
    lengths, quota) raise before anything is written. After that, each file
    is processed on its own: a failure is undone for that file only and
    reported in ``BatchResult.failures``; files already completed stay
    completed.
    """
    blob_store: BlobStore
    image_repo: ImageRepository
    categories: CategoryTracker
    quota: QuotaAccountant
    policy: UploadPolicy
    audit: Optional[AuditLogger] = None
    dimension_reader: Optional[Callable[[bytes], Optional[Tuple[int, int]]]] = None

    def ingest(
        self,
        owner_id: str,
        category_id: Optional[str],
        files: List[IncomingFile],
        tags: Union[str, Iterable[str], None] = None,
        alt: Optional[str] = None,
        description: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> BatchResult:
        clean_tags = normalize_tags(tags)
        alt = (alt or "").strip() or None
        description = (description or "").strip() or None
        self._validate_batch(category_id, files, clean_tags, alt, description)

        result = BatchResult()
        accepted: List[IncomingFile] = []
        for incoming in files:
            if incoming.size > self.policy.max_file_size:
                result.failures.append(FileFailure(incoming.name, REASON_TOO_LARGE))
            else:
                accepted.append(incoming)

        self.quota.ensure_fits(owner_id, sum(f.size for f in accepted))

        for index, incoming in enumerate(accepted):
            if deadline is not None and time.monotonic() >= deadline:
                result.timed_out = True
                result.unprocessed = [f.name for f in accepted[index:]]
                logger.warning(f"Upload for user {owner_id} timed out with {len(result.unprocessed)} file(s) unprocessed")
                break
            image = self._ingest_one(owner_id, category_id, incoming, clean_tags, alt, description, result)
            if image:
                result.completed_images.append(image)

        logger.info(
            f"Upload batch for user {owner_id}: {len(result.completed_images)} completed, "
            f"{len(result.failures)} failed, {len(result.unprocessed)} unprocessed"
        )
        self._audit("upload_batch", owner_id, result.status != "failed", {
            "category_id": category_id,
            "completed": [i.id for i in result.completed_images],
            "failed": [f.file_name for f in result.failures],
            "unprocessed": result.unprocessed,
            "bytes": result.completed_bytes,
        })
        return result

    def _validate_batch(self, category_id, files, tags, alt, description) -> None:
        if not files:
            raise ValidationError("No files selected")
        if len(files) > self.policy.max_files_per_batch:
            raise ValidationError(f"Too many files (max {self.policy.max_files_per_batch} per upload)")
        if not category_id:
            raise ValidationError("Category is required")
        if not self.categories.exists(category_id):
            raise ValidationError("Invalid category")
        if not all(self.policy.allows_type(f.mime_type) for f in files):
            raise ValidationError("Only image files are allowed")
        if any(len(tag) > MAX_TAG_LENGTH for tag in tags):
            raise ValidationError(f"Tags must be at most {MAX_TAG_LENGTH} characters")
        if alt and len(alt) > MAX_ALT_LENGTH:
            raise ValidationError(f"Alt text must be at most {MAX_ALT_LENGTH} characters")
        if description and len(description) > MAX_DESCRIPTION_LENGTH:
            raise ValidationError(f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters")

    def _ingest_one(self, owner_id, category_id, incoming: IncomingFile, tags, alt, description, result: BatchResult) -> Optional[ImageDto]:
        try:
            blob = self.blob_store.put(incoming.data, incoming.name, owner_id)
        except BlobStoreError as exc:
            logger.error(f"Blob write failed for {incoming.name}: {exc}")
            result.failures.append(FileFailure(incoming.name, REASON_STORAGE))
            return None

        dims = self.dimension_reader(incoming.data) if self.dimension_reader else None
        record: Optional[ImageDto] = None
        counted = charged = False
        try:
            record = self.image_repo.create(NewImage(
                owner_id=owner_id,
                category_id=category_id,
                original_name=incoming.name,
                stored_name=blob.stored_name,
                file_path=blob.locator,
                mime_type=incoming.mime_type,
                size=blob.size,
                tags=tags,
                alt=alt,
                description=description,
                width=dims[0] if dims else None,
                height=dims[1] if dims else None,
            ))
            # Counters move while the record is still processing; only completed
            # records release them on delete
            self.categories.increment(category_id)
            counted = True
            self.quota.apply_delta(owner_id, blob.size)
            charged = True
            self.image_repo.mark_completed(record.id)
        except PixelVaultError as exc:
            logger.error(f"Persisting {incoming.name} failed, rolling back: {exc}")
            orphan = self._compensate(owner_id, category_id, blob, record, counted, charged)
            result.failures.append(FileFailure(incoming.name, REASON_STORAGE, orphaned_locator=orphan))
            return None

        record.upload_status = UploadStatus.COMPLETED.value
        return record

    def _compensate(self, owner_id: str, category_id: str, blob: StoredBlob, record: Optional[ImageDto],
                    counted: bool, charged: bool) -> Optional[str]:
        """Undo one file's effects in reverse order; returns the locator if the blob could not be removed."""
        if charged:
            try:
                self.quota.apply_delta(owner_id, -blob.size)
            except PixelVaultError as exc:
                logger.error(f"Could not reverse storage charge for user {owner_id}: {exc}")
        if counted:
            try:
                self.categories.decrement(category_id)
            except PixelVaultError as exc:
                logger.error(f"Could not reverse image_count for category {category_id}: {exc}")
        if record:
            try:
                if not self.image_repo.delete(record.id):
                    logger.warning(f"Record {record.id} was already gone during rollback")
            except PixelVaultError as exc:
                logger.error(f"Could not remove record {record.id} during rollback: {exc}")
                try:
                    self.image_repo.mark_failed(record.id, str(exc))
                except PixelVaultError as mark_exc:
                    logger.error(f"Could not mark record {record.id} failed: {mark_exc}")
        try:
            self._remove_blob(blob.locator)
        except CleanupFailure as failure:
            logger.error(f"{failure.message}: {failure.cause}")
            self._audit("cleanup_failed", owner_id, False, {"locator": failure.locator, "error": str(failure.cause)})
            return failure.locator
        return None

    def _remove_blob(self, locator: str) -> None:
        try:
            removed = self.blob_store.delete(locator)
        except BlobStoreError as exc:
            raise CleanupFailure(locator, exc) from exc
        if not removed:
            logger.info(f"Blob {locator} was already gone during rollback")

    def _audit(self, action: str, user_id: str, success: bool, details: dict) -> None:
        if self.audit:
            self.audit.log(action, user_id=user_id, success=success, details=details)
