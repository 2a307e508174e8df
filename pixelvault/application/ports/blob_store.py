from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Protocol


@dataclass
class StoredBlob:
    locator: str
    stored_name: str
    size: int


class BlobStore(Protocol):
    def put(self, data: bytes, suggested_name: str, owner_id: str) -> StoredBlob:
        ...

    def delete(self, locator: str) -> bool:
        """True if removed, False if it was already gone. Raises BlobStoreError on failure."""
        ...

    def exists(self, locator: str) -> bool:
        ...

    def read(self, locator: str) -> bytes:
        ...

    def resolve(self, locator: str) -> Path:
        ...

    def list_locators(self) -> List[str]:
        ...

    def modified_at(self, locator: str) -> Optional[datetime]:
        """Last write time (naive UTC), or None if the blob is gone."""
        ...
