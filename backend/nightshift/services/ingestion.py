"""
ingestion gate: stable-file events -> registry records

one consumer task drains the event queue in arrival order. for each path the
gate resolves the identity, hashes the content and reconciles with the
registry, waking the scheduler whenever there is work to do.
"""
import asyncio
import os
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

from nightshift.core.config import settings
from nightshift.core.errors import DuplicateHashError
from nightshift.core.logging_config import get_logger
from nightshift.models import FileRecord, SubtitleStatus, VideoStatus
from nightshift.services.hashing import hash_file_async
from nightshift.services.identity import IdentityResolver, identity_resolver
from nightshift.services.log_publisher import publish_log
from nightshift.services.registry import Registry

logger = get_logger(__name__)

Hasher = Callable[[str], Awaitable[str]]


class Wakeable(Protocol):
    def wake(self) -> None:
        ...


class IngestOutcome(str, Enum):
    UNRECOGNIZED = "unrecognized"  # no identity rule matched
    UNREADABLE = "unreadable"  # hashing failed, the watcher will offer it again
    CREATED = "created"
    ALREADY_DONE = "already_done"
    REARMED = "rearmed"  # known record with work left, scheduler woken


@dataclass(frozen=True)
class StableFileEvent:
    path: str


def relative_source(path: str, input_dir: str) -> str:
    """path relative to the drop folder, or absolute when it lies outside it"""
    path = os.path.abspath(path)
    rel = os.path.relpath(path, os.path.abspath(input_dir))
    if rel == os.pardir or rel.startswith(os.pardir + os.sep):
        return path
    return rel


class IngestionGate:
    def __init__(
        self,
        registry: Registry,
        scheduler: Wakeable,
        resolver: Optional[IdentityResolver] = None,
        hasher: Optional[Hasher] = None,
        input_dir: Optional[str] = None,
    ):
        self.registry = registry
        self.scheduler = scheduler
        self.resolver = resolver or identity_resolver
        self.hasher = hasher or hash_file_async
        self.input_dir = input_dir or settings.INPUT_DIR

    async def handle(self, path: str) -> IngestOutcome:
        filename = os.path.basename(path)
        source_path = relative_source(path, self.input_dir)

        cleaned_name = self.resolver.resolve(filename)
        if cleaned_name is None:
            logger.info(f"skipping file {filename} (no identity rule matched)")
            return IngestOutcome.UNRECOGNIZED

        try:
            file_hash = await self.hasher(path)
        except OSError as e:
            logger.warning(f"could not hash {filename}, leaving it for the next stable event: {e}")
            return IngestOutcome.UNREADABLE

        existing = self.registry.find_by_hash(file_hash)
        if existing:
            return self._reconcile(filename, source_path, existing)

        record = FileRecord(
            original_name=filename,
            cleaned_name=cleaned_name,
            file_hash=file_hash,
            source_path=source_path,
            video_status=VideoStatus.PENDING.value,
            subtitle_status=SubtitleStatus.PENDING.value,
            is_legacy=False,
        )
        try:
            file_id = self.registry.insert(record)
        except DuplicateHashError:
            # another insert won the race for this hash
            logger.info(f"file {filename} was registered concurrently, waking scheduler")
            self.scheduler.wake()
            return IngestOutcome.REARMED

        logger.info(f"added file {filename} as {cleaned_name} (id {file_id}) to queue")
        publish_log('ingest', 'SUCCESS', f'queued {cleaned_name}', {
            'file_id': file_id,
            'original_name': filename,
        })
        self.scheduler.wake()
        return IngestOutcome.CREATED

    def _reconcile(self, filename: str, source_path: str, existing: FileRecord) -> IngestOutcome:
        if existing.source_path != source_path:
            # moved or renamed since it was registered
            logger.info(f"file id {existing.id} is now at {source_path} (was {existing.source_path})")
            self.registry.set_source_path(existing.id, source_path)

        if existing.is_terminal():
            logger.info(f"file {filename} already processed (hash match with id {existing.id}), skipping")
            return IngestOutcome.ALREADY_DONE

        logger.info(
            f"file {filename} exists as id {existing.id} "
            f"(video {existing.video_status}, subtitle {existing.subtitle_status}), waking scheduler"
        )
        self.scheduler.wake()
        return IngestOutcome.REARMED

    async def run(self, queue: "asyncio.Queue[StableFileEvent]"):
        """consume stable-file events forever, one at a time, in arrival order"""
        while True:
            event = await queue.get()
            try:
                await self.handle(event.path)
            except Exception as e:
                logger.error(f"error ingesting {event.path}: {e}", exc_info=True)
            finally:
                queue.task_done()
