"""
Memory persistence layer: one markdown file per record.

Stores MemoryRecord objects under a root directory as ``<id>.md``.

Features:
- CRUD operations addressed solely by identifier
- Atomic writes (temp file in the same directory, fsync, then rename)
- Corrupt files are skipped during enumeration, never fatal
- Case-insensitive substring search and exact tag search

Search is a full scan over ``list()``. There is no secondary index to keep
in sync with the files; collections are expected to be small enough for
a scan to be fast.
"""

import contextlib
import logging
import os
import re
import tempfile
import threading
import time
from pathlib import Path
from typing import Iterable, List, Optional

from conduit.errors import MemoryDecodeError, MemoryNotFoundError, MemoryWriteError
from .codec import decode, encode
from .schemas import MemoryRecord, new_memory_id, utcnow


logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".md"
TEMP_SUFFIX = ".tmp"

# Temp files older than this are leftovers from an interrupted write
ORPHAN_TEMP_AGE_SECONDS = 3600

_SAFE_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")


class MemoryStore:
    """
    Durable, concurrency-safe collection of memory records.

    Every record file is written atomically and named only from its
    identifier, so unrelated records never contend. A single per-store
    lock serializes directory enumeration against the commit step of
    create/update/delete, which keeps ``list()`` and ``search()``
    consistent with concurrent mutations.
    """

    def __init__(self, root: Path):
        """
        Initialize memory store.

        Args:
            root: Directory holding the record files; created (with any
                missing parents) if absent

        Raises:
            MemoryWriteError: If the directory cannot be created
        """
        self.root = Path(root).expanduser()
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.error("Failed to create memory directory %s: %s", self.root, exc)
            raise MemoryWriteError(f"Cannot create memory directory {self.root}") from exc

        self._lock = threading.Lock()
        self._sweep_orphaned_temp_files()

    def _path_for(self, memory_id: str) -> Path:
        """Resolve an identifier to its record file, or raise NotFound."""
        if not isinstance(memory_id, str) or not _SAFE_ID.match(memory_id):
            raise MemoryNotFoundError(str(memory_id))
        return self.root / f"{memory_id}{RECORD_SUFFIX}"

    def create(
        self,
        title: str,
        content: str = "",
        tags: Optional[Iterable[str]] = None,
    ) -> MemoryRecord:
        """
        Create and persist a new memory record.

        Args:
            title: Display title (may be empty)
            content: Body text
            tags: Optional tags

        Returns:
            The created record; ``record.id`` is the new identifier

        Raises:
            MemoryWriteError: If the file could not be written
        """
        now = utcnow()
        record = MemoryRecord(
            id=new_memory_id(),
            title=title,
            content=content,
            tags=list(tags or []),
            created_at=now,
            updated_at=now,
        )
        self._write(record, replace=False)
        logger.info("Created memory %s (%r)", record.id, record.title)
        return record

    def get(self, memory_id: str) -> MemoryRecord:
        """
        Retrieve a memory record by ID.

        Raises:
            MemoryNotFoundError: If no file maps to the identifier
            MemoryDecodeError: If the file exists but cannot be read or parsed
        """
        path = self._path_for(memory_id)
        try:
            text = path.read_bytes().decode("utf-8")
        except FileNotFoundError:
            raise MemoryNotFoundError(memory_id) from None
        except (OSError, UnicodeDecodeError) as exc:
            raise MemoryDecodeError(f"Cannot read {path.name}: {exc}") from exc

        record = decode(text)
        if record.id != memory_id:
            raise MemoryDecodeError(
                f"{path.name} declares id {record.id!r}, expected {memory_id!r}"
            )
        return record

    def update(
        self,
        memory_id: str,
        title: str,
        content: str = "",
        tags: Optional[Iterable[str]] = None,
    ) -> MemoryRecord:
        """
        Overwrite title, content and tags of an existing record.

        ``id`` and ``created_at`` are kept; ``updated_at`` is refreshed.

        Raises:
            MemoryNotFoundError: If the record does not exist (or was
                deleted while the update was in flight)
            MemoryDecodeError: If the existing file is unreadable
            MemoryWriteError: If the file could not be written
        """
        current = self.get(memory_id)
        record = current.model_copy(
            update={
                "title": title,
                "content": content,
                "tags": list(tags or []),
                "updated_at": max(utcnow(), current.created_at),
            }
        )
        self._write(record, replace=True)
        logger.info("Updated memory %s", memory_id)
        return record

    def delete(self, memory_id: str) -> None:
        """
        Remove the file backing a record.

        Raises:
            MemoryNotFoundError: If the record does not exist
            MemoryWriteError: If the file exists but could not be removed
        """
        path = self._path_for(memory_id)
        with self._lock:
            try:
                path.unlink()
            except FileNotFoundError:
                raise MemoryNotFoundError(memory_id) from None
            except OSError as exc:
                logger.error("Failed to delete memory %s: %s", memory_id, exc)
                raise MemoryWriteError(f"Failed to delete memory {memory_id}") from exc
        logger.info("Deleted memory %s", memory_id)

    def list(self) -> List[MemoryRecord]:
        """
        List every readable record, oldest first.

        Files that fail to decode are logged and skipped. An empty store
        yields an empty list.
        """
        records = []
        with self._lock:
            for path in self.root.glob(f"*{RECORD_SUFFIX}"):
                record = self._load_entry(path)
                if record is not None:
                    records.append(record)

        records.sort(key=lambda r: (r.created_at, r.id))
        return records

    def search(self, query: str) -> List[MemoryRecord]:
        """Records whose title, content or any tag contains ``query`` (case-insensitive)."""
        return [record for record in self.list() if record.matches(query)]

    def search_by_tag(self, tag: str) -> List[MemoryRecord]:
        """Records carrying ``tag`` exactly, ignoring case."""
        return [record for record in self.list() if record.has_tag(tag)]

    def _load_entry(self, path: Path) -> Optional[MemoryRecord]:
        """Decode one directory entry; None if it is not a readable record."""
        if not path.is_file():
            return None
        try:
            record = decode(path.read_bytes().decode("utf-8"))
        except FileNotFoundError:
            # Removed between glob and read
            return None
        except (OSError, UnicodeDecodeError, MemoryDecodeError) as exc:
            logger.warning("Skipping unreadable memory file %s: %s", path.name, exc)
            return None

        if record.id != path.stem:
            logger.warning(
                "Skipping memory file %s: header id %r does not match file name",
                path.name,
                record.id,
            )
            return None
        return record

    def _write(self, record: MemoryRecord, replace: bool) -> None:
        """
        Atomically write a record file.

        The encoded record goes to a hidden temp file in the store
        directory first; only a complete, fsynced file is renamed into
        place, so readers never see a partial record.

        Args:
            record: Record to persist
            replace: True to overwrite an existing record (update), False
                to require that none exists (create)
        """
        path = self._path_for(record.id)
        data = encode(record).encode("utf-8")
        tmp_path: Optional[Path] = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="wb",
                delete=False,
                dir=str(self.root),
                prefix=f".{record.id}.",
                suffix=TEMP_SUFFIX,
            ) as handle:
                tmp_path = Path(handle.name)
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())

            with self._lock:
                exists = path.exists()
                if replace and not exists:
                    raise MemoryNotFoundError(record.id)
                if not replace and exists:
                    raise MemoryWriteError(f"Identifier collision for {record.id}")
                os.replace(tmp_path, path)
                tmp_path = None
        except OSError as exc:
            logger.error("Failed to write memory %s: %s", record.id, exc)
            raise MemoryWriteError(f"Failed to write memory {record.id}") from exc
        finally:
            if tmp_path is not None:
                with contextlib.suppress(OSError):
                    tmp_path.unlink()

    def _sweep_orphaned_temp_files(self) -> None:
        cutoff = time.time() - ORPHAN_TEMP_AGE_SECONDS
        for tmp_path in self.root.glob(f".*{TEMP_SUFFIX}"):
            try:
                if tmp_path.stat().st_mtime < cutoff:
                    tmp_path.unlink()
                    logger.info("Removed orphaned temp file %s", tmp_path.name)
            except OSError as exc:
                logger.warning("Could not remove orphaned temp file %s: %s", tmp_path.name, exc)

    def __repr__(self) -> str:
        return f"MemoryStore(root='{self.root}')"
