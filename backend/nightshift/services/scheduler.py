"""
scheduler: the single-flight drain loop

a drain repeatedly pulls batches of records that still have work, checks the
daily window before each file, and runs subtitle extraction then transcoding.
statuses are written only after an operation returns, so a crash mid-file
leaves the record pending and the next drain starts it over.
"""
import asyncio
import os
import time as monotonic_time
from dataclasses import dataclass, field
from datetime import datetime, time
from typing import Callable, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError

from nightshift.core.config import settings
from nightshift.core.errors import InvalidScheduleError, RegistryUnavailableError, handle_record_error
from nightshift.core.logging_config import get_logger
from nightshift.models import FileRecord, ProcessLog, SubtitleStatus, Track, VideoStatus
from nightshift.services.ffmpeg import MediaOperations, OperationResult
from nightshift.services.log_publisher import publish_log
from nightshift.services.registry import Registry

logger = get_logger(__name__)

SETTING_START = "schedule.start"
SETTING_STOP = "schedule.stop"

Clock = Callable[[], datetime]


def parse_hhmm(value: str) -> time:
    try:
        hour, minute = str(value).strip().split(":")
        return time(int(hour), int(minute))
    except (ValueError, TypeError) as e:
        raise InvalidScheduleError(f"expected HH:MM, got {value!r}") from e


@dataclass(frozen=True)
class TimeWindow:
    """
    daily window in local time, start inclusive and stop exclusive
    start after stop wraps past midnight; start == stop means always open
    """
    start: time
    stop: time

    @classmethod
    def from_strings(cls, start: str, stop: str) -> "TimeWindow":
        return cls(parse_hhmm(start), parse_hhmm(stop))

    def contains(self, moment: time) -> bool:
        if self.start == self.stop:
            return True
        if self.start < self.stop:
            return self.start <= moment < self.stop
        return moment >= self.start or moment < self.stop

    def to_dict(self) -> dict:
        return {"start": self.start.strftime("%H:%M"), "stop": self.stop.strftime("%H:%M")}


@dataclass
class RecordOutcome:
    record_id: int
    subtitle_status: Optional[str] = None  # None when the track was not attempted
    video_status: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class DrainResult:
    outcomes: List[RecordOutcome] = field(default_factory=list)
    attempted: Set[int] = field(default_factory=set)
    stopped_by_window: bool = False
    error: Optional[str] = None
    started_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)

    def to_dict(self) -> dict:
        return {
            "processed": len(self.outcomes),
            "failed": self.failed,
            "stopped_by_window": self.stopped_by_window,
            "error": self.error,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


class Scheduler:
    def __init__(
        self,
        registry: Registry,
        media_ops: MediaOperations,
        input_dir: str = None,
        window: TimeWindow = None,
        batch_size: int = None,
        clock: Clock = datetime.now,
    ):
        self.registry = registry
        self.media_ops = media_ops
        self.input_dir = input_dir or settings.INPUT_DIR
        self.default_window = window or TimeWindow.from_strings(settings.SCHEDULE_START, settings.SCHEDULE_STOP)
        self.batch_size = batch_size or settings.SCHEDULER_BATCH_SIZE
        self.clock = clock

        self.active = False
        self.last_drain: Optional[DrainResult] = None
        self._rescan = False
        self._task: Optional[asyncio.Task] = None

    # window

    def current_window(self) -> TimeWindow:
        """the stored override when there is a valid one, else the configured window"""
        try:
            start = self.registry.get_setting(SETTING_START)
            stop = self.registry.get_setting(SETTING_STOP)
        except RegistryUnavailableError as e:
            logger.warning(f"could not read schedule override, using configured window: {e}")
            return self.default_window

        if not start and not stop:
            return self.default_window
        try:
            return TimeWindow(
                parse_hhmm(start) if start else self.default_window.start,
                parse_hhmm(stop) if stop else self.default_window.stop,
            )
        except InvalidScheduleError as e:
            logger.warning(f"ignoring invalid schedule override: {e}")
            return self.default_window

    def within_window(self) -> bool:
        return self.current_window().contains(self.clock().time())

    # wake / drain

    def wake(self) -> None:
        """start a drain, or fold this wake into the one already running"""
        if self.active or (self._task and not self._task.done()):
            self._rescan = True
            return
        self._task = asyncio.get_running_loop().create_task(self.drain())

    async def drain(self) -> Optional[DrainResult]:
        """run one drain; returns None when another drain already holds the latch"""
        if self.active:
            self._rescan = True
            return None
        self.active = True
        result = DrainResult()
        try:
            logger.info("drain started")
            while True:
                self._rescan = False
                stopped = await self._drain_pass(result)
                if stopped or not self._rescan:
                    break
                logger.info("wake arrived during drain, rescanning")
        finally:
            self.active = False
            result.finished_at = datetime.utcnow()
            self.last_drain = result

        logger.info(
            f"drain finished: {len(result.outcomes)} processed, {result.failed} with errors"
            f"{', stopped by time window' if result.stopped_by_window else ''}"
        )
        publish_log('scheduler', 'INFO', 'drain finished', result.to_dict())
        return result

    async def _drain_pass(self, result: DrainResult) -> bool:
        """returns True when the drain must stop (window closed or store down)"""
        while True:
            try:
                batch = self.registry.list_nonterminal(limit=self.batch_size, offset=0)
            except RegistryUnavailableError as e:
                logger.error(f"registry unavailable, abandoning drain: {e}")
                publish_log('scheduler', 'ERROR', f'registry unavailable: {e}')
                result.error = str(e)
                return True

            if not batch:
                return False

            fresh = [record for record in batch if record.id not in result.attempted]
            if not fresh:
                logger.warning(
                    f"{len(batch)} records are still pending after an attempt this drain, "
                    f"leaving them for the next wake"
                )
                return False

            for record in fresh:
                if not self.within_window():
                    logger.info(f"outside processing window at {self.clock():%H:%M}, stopping drain")
                    result.stopped_by_window = True
                    return True
                result.attempted.add(record.id)
                result.outcomes.append(await self.process_record(record))

    # per file

    def source_path(self, record: FileRecord) -> str:
        # records without a recorded location are looked up by name at the top level
        return os.path.join(self.input_dir, record.source_path or record.original_name)

    async def process_record(self, record: FileRecord) -> RecordOutcome:
        """
        run the outstanding tracks for one record, subtitle first
        never raises: every error ends up in the outcome and the record's status
        """
        outcome = RecordOutcome(record_id=record.id)
        source_path = self.source_path(record)
        logger.info(f"processing file: {record.original_name}")

        if record.subtitle_pending():
            outcome.subtitle_status = await self._run_track(
                record, Track.SUBTITLE, self.media_ops.extract_subtitles, source_path,
                SubtitleStatus.EXTRACTED, SubtitleStatus.FAILED, outcome,
            )

        if record.video_pending():
            outcome.video_status = await self._run_track(
                record, Track.VIDEO, self.media_ops.transcode, source_path,
                VideoStatus.COMPLETED, VideoStatus.FAILED, outcome,
            )

        return outcome

    async def _run_track(self, record, track, operation, source_path, success, failure, outcome) -> str:
        started = monotonic_time.monotonic()
        error = None
        try:
            op_result = await operation(source_path, record)
            status = success
        except Exception as e:
            handle_record_error(record.id, e)
            op_result = OperationResult(output_path=getattr(e, "output_path", None))
            status = failure
            error = str(e) or e.__class__.__name__
            outcome.errors.append(f"{track.value}: {error}")
        duration = monotonic_time.monotonic() - started

        try:
            self.registry.set_status(record.id, track, status)
            self.registry.log_process(ProcessLog(
                file_id=record.id,
                operation=track.value,
                output_path=op_result.output_path,
                ssim_score=op_result.ssim_score,
                psnr_score=op_result.psnr_score,
                error_log=error,
                duration_sec=round(duration, 3),
            ))
        except (SQLAlchemyError, KeyError) as e:
            # status stays as it was; the record is retried on a later drain
            logger.error(f"could not record {track.value} result for file {record.id}: {e}")
            outcome.errors.append(f"{track.value}: status not saved: {e}")
            return status.value

        level = 'SUCCESS' if status == success else 'ERROR'
        publish_log('scheduler', level, f'{track.value} {status.value}: {record.cleaned_name or record.original_name}', {
            'file_id': record.id,
            'duration_sec': round(duration, 1),
        })
        return status.value

    async def run_periodic(self, interval: float = None):
        """wake on a timer so work resumes once the window opens again"""
        interval = interval or settings.SCHEDULER_POLL_SECONDS
        while True:
            await asyncio.sleep(interval)
            self.wake()

    async def stop(self):
        """cancel an in-flight drain; the current file's status is left unwritten"""
        task, self._task = self._task, None
        if task and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    async def wait_idle(self):
        """await the drain task started by wake(), if any"""
        while self._task and not self._task.done():
            await asyncio.shield(self._task)
