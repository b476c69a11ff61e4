"""
drop folder watcher

watchdog reports raw create/modify/move events from its own thread; paths are
handed to the event loop, held until their size and mtime stop changing, and
only then queued for ingestion. polling mode is the safe choice on SMB/NFS
shares where native notifications are unreliable.
"""
import asyncio
import os
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from nightshift.core.config import settings
from nightshift.core.logging_config import get_logger
from nightshift.services.ingestion import StableFileEvent
from nightshift.services.log_publisher import publish_log

logger = get_logger(__name__)


def is_hidden(path: str) -> bool:
    return os.path.basename(path).startswith(".")


@dataclass
class _Candidate:
    signature: Tuple[int, float]
    changed_at: float


class StabilityTracker:
    """
    tracks candidate paths until they have been unchanged for stability_seconds
    not thread-safe; only the event loop touches it
    """

    def __init__(self, stability_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.stability_seconds = stability_seconds
        self.clock = clock
        self._candidates: Dict[str, _Candidate] = {}

    def __len__(self):
        return len(self._candidates)

    def __contains__(self, path):
        return path in self._candidates

    @staticmethod
    def _signature(path: str) -> Optional[Tuple[int, float]]:
        try:
            st = os.stat(path)
        except OSError:
            return None
        return st.st_size, st.st_mtime

    def touch(self, path: str):
        signature = self._signature(path)
        if signature is None:
            return
        current = self._candidates.get(path)
        if current is None or current.signature != signature:
            self._candidates[path] = _Candidate(signature, self.clock())

    def poll(self) -> List[str]:
        """return (and forget) every path that has settled"""
        now = self.clock()
        stable = []
        for path, candidate in list(self._candidates.items()):
            signature = self._signature(path)
            if signature is None:
                logger.info(f"file disappeared before settling: {path}")
                del self._candidates[path]
            elif signature != candidate.signature:
                candidate.signature = signature
                candidate.changed_at = now
            elif now - candidate.changed_at >= self.stability_seconds:
                stable.append(path)
                del self._candidates[path]
        return stable


class DropFolderHandler(FileSystemEventHandler):
    """forwards file create/modify/move events to a callback"""

    def __init__(self, on_path: Callable[[str], None]):
        super().__init__()
        self.on_path = on_path

    def _forward(self, path: str):
        if not is_hidden(path):
            self.on_path(path)

    def on_created(self, event: FileSystemEvent):
        if not event.is_directory:
            self._forward(event.src_path)

    def on_modified(self, event: FileSystemEvent):
        if not event.is_directory:
            self._forward(event.src_path)

    def on_moved(self, event: FileSystemEvent):
        if not event.is_directory:
            self._forward(event.dest_path)


class DropFolderWatcher:
    def __init__(
        self,
        input_dir: str,
        queue: "asyncio.Queue[StableFileEvent]",
        use_polling: bool = None,
        poll_interval: float = None,
        stability_seconds: float = None,
        check_interval: float = None,
    ):
        self.input_dir = input_dir
        self.queue = queue
        self.use_polling = settings.WATCHER_USE_POLLING if use_polling is None else use_polling
        self.poll_interval = poll_interval or settings.WATCHER_POLL_INTERVAL
        self.check_interval = check_interval or settings.WATCHER_CHECK_INTERVAL
        self.tracker = StabilityTracker(
            settings.WATCHER_STABILITY_SECONDS if stability_seconds is None else stability_seconds
        )
        self.observer = None

    def scan_existing(self):
        """files already sitting in the drop folder count as new arrivals"""
        for root, dirs, files in os.walk(self.input_dir):
            dirs[:] = [d for d in dirs if not d.startswith(".")]
            for name in files:
                if not name.startswith("."):
                    self.tracker.touch(os.path.join(root, name))

    def _start_observer(self, loop: asyncio.AbstractEventLoop):
        handler = DropFolderHandler(lambda path: loop.call_soon_threadsafe(self.tracker.touch, path))
        if self.use_polling:
            self.observer = PollingObserver(timeout=self.poll_interval)
        else:
            self.observer = Observer()
        self.observer.schedule(handler, self.input_dir, recursive=True)
        self.observer.start()

    def _stop_observer(self):
        if self.observer:
            self.observer.stop()
            self.observer.join(timeout=5)
            self.observer = None

    async def run(self):
        os.makedirs(self.input_dir, exist_ok=True)
        self._start_observer(asyncio.get_running_loop())
        self.scan_existing()
        mode = "polling" if self.use_polling else "native"
        logger.info(f"watcher started on {self.input_dir} ({mode})")
        publish_log('watcher', 'INFO', f'watching {self.input_dir}')

        try:
            while True:
                await asyncio.sleep(self.check_interval)
                for path in self.tracker.poll():
                    logger.debug(f"file is stable: {path}")
                    # bounded queue: waits here when ingestion falls behind
                    await self.queue.put(StableFileEvent(path))
        finally:
            self._stop_observer()
