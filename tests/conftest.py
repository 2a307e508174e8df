from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from sqlmodel import Session

from pixelvault.application.ports.blob_store import StoredBlob
from pixelvault.application.ports.category_repo import CategoryDto
from pixelvault.application.ports.counters import CounterUpdate
from pixelvault.application.ports.image_repo import ImageDto, NewImage
from pixelvault.application.ports.user_repo import UserDto
from pixelvault.application.services.category_service import CategoryTracker
from pixelvault.application.services.image_service import ImageService
from pixelvault.application.services.quota_service import QuotaAccountant
from pixelvault.application.services.upload_service import UploadPipeline, UploadPolicy
from pixelvault.database import build_engine, create_db_and_tables
from pixelvault.exceptions import BlobStoreError, BlobWriteFailure, RecordPersistFailure


class FakeUserRepo:
    def __init__(self):
        self.users: Dict[str, UserDto] = {}

    def add(self, user_id: str, storage_used: int = 0, max_storage: int = 10_000) -> UserDto:
        user = UserDto(user_id, user_id, f"{user_id}@example.com", storage_used, max_storage, True, datetime.utcnow())
        self.users[user_id] = user
        return user

    def get_by_id(self, user_id: str) -> Optional[UserDto]:
        user = self.users.get(user_id)
        return replace(user) if user else None

    def add_storage_used(self, user_id: str, delta: int) -> Optional[CounterUpdate]:
        user = self.users.get(user_id)
        if not user:
            return None
        new_value = user.storage_used + delta
        clamped = new_value < 0
        user.storage_used = max(new_value, 0)
        return CounterUpdate(user.storage_used, clamped)

    def set_storage_used(self, user_id: str, value: int, only_if: Optional[int] = None) -> bool:
        user = self.users.get(user_id)
        if not user or (only_if is not None and user.storage_used != only_if):
            return False
        user.storage_used = value
        return True

    def list_all(self) -> List[UserDto]:
        return [replace(u) for u in self.users.values()]


class FakeCategoryRepo:
    def __init__(self):
        self.categories: Dict[str, CategoryDto] = {}
        self.fail_increment = False
        self._id = 1

    def get_by_id(self, category_id: str) -> Optional[CategoryDto]:
        c = self.categories.get(category_id)
        return replace(c) if c else None

    def get_by_name(self, name: str) -> Optional[CategoryDto]:
        return next((replace(c) for c in self.categories.values() if c.name.lower() == name.strip().lower()), None)

    def list_all(self) -> List[CategoryDto]:
        return sorted((replace(c) for c in self.categories.values()), key=lambda c: c.name)

    def create(self, name: str, description: Optional[str], created_by: Optional[str]) -> CategoryDto:
        c = CategoryDto(f"cat-{self._id}", name, description, True, 0, created_by, datetime.utcnow())
        self._id += 1
        self.categories[c.id] = c
        return replace(c)

    def update(self, category_id: str, name: str, description: Optional[str]) -> Optional[CategoryDto]:
        c = self.categories.get(category_id)
        if not c:
            return None
        c.name = name
        c.description = description
        return replace(c)

    def delete_if_empty(self, category_id: str) -> bool:
        c = self.categories.get(category_id)
        if not c or c.image_count != 0:
            return False
        del self.categories[category_id]
        return True

    def add_image_count(self, category_id: str, delta: int) -> Optional[CounterUpdate]:
        if delta > 0 and self.fail_increment:
            raise RecordPersistFailure("category counter unavailable")
        c = self.categories.get(category_id)
        if not c:
            return None
        new_value = c.image_count + delta
        c.image_count = max(new_value, 0)
        return CounterUpdate(c.image_count, new_value < 0)

    def set_image_count(self, category_id: str, value: int, only_if: Optional[int] = None) -> bool:
        c = self.categories.get(category_id)
        if not c or (only_if is not None and c.image_count != only_if):
            return False
        c.image_count = value
        return True


class FakeImageRepo:
    def __init__(self):
        self.images: Dict[str, ImageDto] = {}
        self.fail_create_for = set()
        self.fail_delete = False
        self._id = 1

    def create(self, new_image: NewImage) -> ImageDto:
        if new_image.original_name in self.fail_create_for:
            raise RecordPersistFailure(f"cannot save {new_image.original_name}")
        image = ImageDto(
            id=f"img-{self._id}",
            owner_id=new_image.owner_id,
            category_id=new_image.category_id,
            original_name=new_image.original_name,
            stored_name=new_image.stored_name,
            file_path=new_image.file_path,
            mime_type=new_image.mime_type,
            size=new_image.size,
            tags=list(new_image.tags),
            alt=new_image.alt,
            description=new_image.description,
            width=new_image.width,
            height=new_image.height,
            upload_status="processing",
            created_at=datetime.utcnow(),
        )
        self._id += 1
        self.images[image.id] = image
        return replace(image)

    def _set_status(self, image_id: str, status: str) -> None:
        if image_id not in self.images:
            raise RecordPersistFailure(f"image {image_id} is gone")
        self.images[image_id].upload_status = status

    def mark_completed(self, image_id: str) -> None:
        self._set_status(image_id, "completed")

    def mark_failed(self, image_id: str, error: str) -> None:
        self._set_status(image_id, "failed")

    def get_by_id(self, image_id: str) -> Optional[ImageDto]:
        i = self.images.get(image_id)
        return replace(i) if i else None

    def get_for_owner(self, image_id: str, owner_id: str) -> Optional[ImageDto]:
        i = self.images.get(image_id)
        return replace(i) if i and i.owner_id == owner_id else None

    def delete(self, image_id: str) -> bool:
        if self.fail_delete:
            raise RecordPersistFailure("delete failed")
        return self.images.pop(image_id, None) is not None

    def search(self, owner_id, category_id, query, offset, limit):
        rows = [i for i in self.images.values() if i.owner_id == owner_id and i.upload_status == "completed"]
        if category_id:
            rows = [i for i in rows if i.category_id == category_id]
        if query:
            q = query.lower()
            rows = [i for i in rows if q in i.original_name.lower() or any(q in t for t in i.tags)]
        return [replace(i) for i in rows[offset:offset + limit]], len(rows)

    def list_all(self) -> List[ImageDto]:
        return [replace(i) for i in self.images.values()]


class FakeBlobStore:
    def __init__(self):
        self.blobs: Dict[str, bytes] = {}
        # Blobs added straight to `blobs` have no entry here and count as old
        self.written_at: Dict[str, datetime] = {}
        self.fail_put_for = set()
        self.fail_delete = False
        self._n = 0

    def put(self, data: bytes, suggested_name: str, owner_id: str) -> StoredBlob:
        if suggested_name in self.fail_put_for:
            raise BlobWriteFailure(f"disk full writing {suggested_name}")
        self._n += 1
        stored_name = f"{owner_id}-{self._n}-{suggested_name}"
        locator = f"images/{stored_name}"
        self.blobs[locator] = data
        self.written_at[locator] = datetime.utcnow()
        return StoredBlob(locator=locator, stored_name=stored_name, size=len(data))

    def delete(self, locator: str) -> bool:
        if self.fail_delete:
            raise BlobStoreError(f"permission denied: {locator}")
        return self.blobs.pop(locator, None) is not None

    def exists(self, locator: str) -> bool:
        return locator in self.blobs

    def read(self, locator: str) -> bytes:
        return self.blobs[locator]

    def resolve(self, locator: str) -> Path:
        return Path("/fake") / locator

    def list_locators(self) -> List[str]:
        return sorted(self.blobs)

    def modified_at(self, locator: str) -> Optional[datetime]:
        if locator not in self.blobs:
            return None
        return self.written_at.get(locator, datetime.min)


class FakeAudit:
    def __init__(self):
        self.entries = []

    def log(self, action, user_id=None, success=True, details=None):
        self.entries.append((action, user_id, success, details or {}))

    def actions(self):
        return [e[0] for e in self.entries]


@pytest.fixture
def users():
    repo = FakeUserRepo()
    repo.add("u1", storage_used=0, max_storage=10_000)
    return repo


@pytest.fixture
def category_repo():
    repo = FakeCategoryRepo()
    repo.create("Holidays", "", "u1")
    return repo


@pytest.fixture
def image_repo():
    return FakeImageRepo()


@pytest.fixture
def blobs():
    return FakeBlobStore()


@pytest.fixture
def audit():
    return FakeAudit()


@pytest.fixture
def quota(users, audit):
    return QuotaAccountant(user_repo=users, audit=audit)


@pytest.fixture
def tracker(category_repo, audit):
    return CategoryTracker(repo=category_repo, audit=audit)


@pytest.fixture
def pipeline(blobs, image_repo, tracker, quota, audit):
    policy = UploadPolicy(max_file_size=1_000, max_files_per_batch=5)
    return UploadPipeline(
        blob_store=blobs,
        image_repo=image_repo,
        categories=tracker,
        quota=quota,
        policy=policy,
        audit=audit,
    )


@pytest.fixture
def images(image_repo, blobs, tracker, quota, audit):
    return ImageService(image_repo=image_repo, blob_store=blobs, categories=tracker, quota=quota, audit=audit)


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session
