import asyncio

from nightshift.core.errors import DuplicateHashError
from nightshift.services.ingestion import IngestOutcome, IngestionGate, StableFileEvent


class WakeCounter:
    def __init__(self):
        self.wakes = 0

    def wake(self):
        self.wakes += 1


def drop(tmp_path, name, content=b"video bytes"):
    path = tmp_path / name
    path.write_bytes(content)
    return str(path)


def test_unrecognized_name_is_ignored(tmp_path, registry):
    scheduler = WakeCounter()
    gate = IngestionGate(registry, scheduler)

    outcome = asyncio.run(gate.handle(drop(tmp_path, "holiday video.mp4")))

    assert outcome == IngestOutcome.UNRECOGNIZED
    assert registry.count_files() == 0
    assert scheduler.wakes == 0


def test_new_file_creates_pending_record_and_wakes(tmp_path, registry):
    scheduler = WakeCounter()
    gate = IngestionGate(registry, scheduler)

    outcome = asyncio.run(gate.handle(drop(tmp_path, "hhd800.com@FNS-075.mp4")))

    assert outcome == IngestOutcome.CREATED
    assert scheduler.wakes == 1
    record = registry.find_by_cleaned_name("FNS-075.mp4")
    assert record.original_name == "hhd800.com@FNS-075.mp4"
    assert record.video_status == "pending"
    assert record.subtitle_status == "pending"
    assert record.is_legacy is False
    assert len(record.file_hash) == 64


def test_same_content_under_another_name_is_one_record(tmp_path, registry):
    scheduler = WakeCounter()
    gate = IngestionGate(registry, scheduler)

    first = asyncio.run(gate.handle(drop(tmp_path, "site@FNS-075.mp4", b"identical")))
    second = asyncio.run(gate.handle(drop(tmp_path, "mirror@FNS-075.mp4", b"identical")))

    assert first == IngestOutcome.CREATED
    assert second == IngestOutcome.REARMED
    assert registry.count_files() == 1
    assert scheduler.wakes == 2


def test_terminal_record_is_not_requeued(tmp_path, registry, add_record):
    scheduler = WakeCounter()
    path = drop(tmp_path, "site@FNS-075.mp4", b"done already")
    gate = IngestionGate(registry, scheduler)
    file_hash = asyncio.run(gate.hasher(path))
    record = add_record(file_hash=file_hash, video_status="completed", subtitle_status="failed")

    outcome = asyncio.run(gate.handle(path))

    assert outcome == IngestOutcome.ALREADY_DONE
    assert scheduler.wakes == 0
    assert registry.get(record.id).subtitle_status == "failed"


def test_legacy_record_with_pending_subtitle_is_rearmed(tmp_path, registry, add_record):
    scheduler = WakeCounter()
    path = drop(tmp_path, "site@OLD-001.mp4", b"legacy content")
    gate = IngestionGate(registry, scheduler)
    add_record(file_hash=asyncio.run(gate.hasher(path)), is_legacy=True, video_status="completed")

    assert asyncio.run(gate.handle(path)) == IngestOutcome.REARMED
    assert scheduler.wakes == 1
    assert registry.count_files() == 1


def test_unreadable_file_is_left_for_the_next_event(tmp_path, registry):
    scheduler = WakeCounter()
    gate = IngestionGate(registry, scheduler)

    outcome = asyncio.run(gate.handle(str(tmp_path / "site@FNS-075.mp4")))

    assert outcome == IngestOutcome.UNREADABLE
    assert registry.count_files() == 0
    assert scheduler.wakes == 0


def test_lost_insert_race_wakes_instead_of_failing(tmp_path, registry):
    class RacingRegistry:
        def __init__(self, inner):
            self.inner = inner

        def find_by_hash(self, file_hash):
            return None

        def insert(self, record):
            raise DuplicateHashError(record.file_hash)

    scheduler = WakeCounter()
    gate = IngestionGate(RacingRegistry(registry), scheduler)

    outcome = asyncio.run(gate.handle(drop(tmp_path, "site@FNS-075.mp4")))

    assert outcome == IngestOutcome.REARMED
    assert scheduler.wakes == 1


def test_run_consumes_events_in_order_and_survives_errors(tmp_path, registry):
    scheduler = WakeCounter()
    seen = []

    async def hasher(path):
        seen.append(path)
        if path.endswith("BAD-001.mp4"):
            raise RuntimeError("disk on fire")
        return f"hash:{path}"

    gate = IngestionGate(registry, scheduler, hasher=hasher)
    paths = [str(tmp_path / name) for name in ("a@AAA-001.mp4", "b@BAD-001.mp4", "c@CCC-003.mp4")]

    async def main():
        queue = asyncio.Queue()
        for path in paths:
            queue.put_nowait(StableFileEvent(path))
        consumer = asyncio.create_task(gate.run(queue))
        await queue.join()
        consumer.cancel()

    asyncio.run(main())

    assert seen == paths
    assert registry.find_by_cleaned_name("AAA-001.mp4") is not None
    assert registry.find_by_cleaned_name("BAD-001.mp4") is None
    assert registry.find_by_cleaned_name("CCC-003.mp4") is not None
    assert scheduler.wakes == 2
