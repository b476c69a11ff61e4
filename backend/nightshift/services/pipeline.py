"""
process-wide singletons and the background tasks that tie them together

watcher -> bounded queue -> ingestion gate -> registry -> scheduler wake
"""
import asyncio
from typing import List, Optional

from nightshift.core.config import settings
from nightshift.core.db import engine
from nightshift.core.logging_config import get_logger
from nightshift.services.ffmpeg import FfmpegMediaOperations
from nightshift.services.ingestion import IngestionGate
from nightshift.services.registry import Registry
from nightshift.services.scheduler import Scheduler
from nightshift.services.status_notifier import StatusNotifier
from nightshift.services.watcher import DropFolderWatcher

logger = get_logger(__name__)


class Pipeline:
    def __init__(self, registry: Registry, scheduler: Scheduler, notifier: StatusNotifier):
        self.registry = registry
        self.scheduler = scheduler
        self.notifier = notifier
        self.queue: Optional[asyncio.Queue] = None
        self.tasks: List[asyncio.Task] = []

    def start(self, web_only: bool = False):
        loop = asyncio.get_running_loop()
        self.tasks.append(loop.create_task(self.notifier.run(), name="status-notifier"))

        if web_only:
            logger.info("running in web-only mode, watcher and scheduler are disabled")
            return

        self.queue = asyncio.Queue(maxsize=settings.INGEST_QUEUE_SIZE)
        gate = IngestionGate(self.registry, self.scheduler)
        watcher = DropFolderWatcher(settings.INPUT_DIR, self.queue)

        self.tasks.append(loop.create_task(gate.run(self.queue), name="ingestion-gate"))
        self.tasks.append(loop.create_task(watcher.run(), name="drop-folder-watcher"))
        self.tasks.append(loop.create_task(self.scheduler.run_periodic(), name="scheduler-timer"))

        # pick up anything left pending by a previous run
        self.scheduler.wake()

    async def stop(self):
        for task in self.tasks:
            task.cancel()
        results = await asyncio.gather(*self.tasks, return_exceptions=True)
        for task, result in zip(self.tasks, results):
            if isinstance(result, Exception) and not isinstance(result, asyncio.CancelledError):
                logger.error(f"background task {task.get_name()} ended with error: {result}")
        self.tasks = []
        await self.scheduler.stop()


registry = Registry(engine)
scheduler = Scheduler(registry, FfmpegMediaOperations())
notifier = StatusNotifier(registry, scheduler)
pipeline = Pipeline(registry, scheduler, notifier)


def get_registry() -> Registry:
    return registry


def get_scheduler() -> Scheduler:
    return scheduler


def get_notifier() -> StatusNotifier:
    return notifier
