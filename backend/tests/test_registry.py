from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlmodel import SQLModel, create_engine

from nightshift.core.errors import DuplicateHashError
from nightshift.models import FileRecord, ProcessLog, SubtitleStatus, Track, VideoStatus
from nightshift.services.registry import Registry


def test_insert_and_find_by_hash(registry):
    file_id = registry.insert(FileRecord(original_name="a@FNS-075.mp4", cleaned_name="FNS-075.mp4", file_hash="h1"))

    found = registry.find_by_hash("h1")
    assert found.id == file_id
    assert found.video_status == "pending"
    assert found.subtitle_status == "pending"
    assert found.is_legacy is False
    assert registry.find_by_hash("nope") is None


def test_duplicate_hash_is_rejected(registry):
    registry.insert(FileRecord(original_name="one.mp4", cleaned_name="A-1.mp4", file_hash="same"))

    with pytest.raises(DuplicateHashError):
        registry.insert(FileRecord(original_name="two.mp4", cleaned_name="A-1.mp4", file_hash="same"))
    assert registry.count_files() == 1


def test_null_hashes_do_not_collide(registry):
    registry.insert(FileRecord(original_name="old1.mp4", cleaned_name="OLD-1.mp4", file_hash=None, is_legacy=True))
    registry.insert(FileRecord(original_name="old2.mp4", cleaned_name="OLD-2.mp4", file_hash=None, is_legacy=True))
    assert registry.count_files() == 2


def test_concurrent_inserts_of_one_hash_have_one_winner(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'registry.sqlite'}", connect_args={"check_same_thread": False})
    SQLModel.metadata.create_all(engine)
    registry = Registry(engine)

    def attempt(n):
        try:
            return registry.insert(FileRecord(original_name=f"copy{n}.mp4", cleaned_name="A-1.mp4", file_hash="race"))
        except DuplicateHashError:
            return None

    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(attempt, range(8)))

    assert len([r for r in results if r is not None]) == 1
    assert registry.count_files() == 1
    engine.dispose()


def test_set_status_touches_only_its_track(registry, add_record):
    record = add_record()

    registry.set_status(record.id, Track.SUBTITLE, SubtitleStatus.EXTRACTED)
    updated = registry.get(record.id)
    assert updated.subtitle_status == "extracted"
    assert updated.video_status == "pending"

    registry.set_status(record.id, "video", "failed")
    updated = registry.get(record.id)
    assert updated.video_status == "failed"
    assert updated.subtitle_status == "extracted"


def test_set_status_rejects_values_outside_the_track_enum(registry, add_record):
    record = add_record()

    with pytest.raises(ValueError):
        registry.set_status(record.id, Track.SUBTITLE, "completed")
    with pytest.raises(ValueError):
        registry.set_status(record.id, Track.VIDEO, "extracted")
    with pytest.raises(ValueError):
        registry.set_status(record.id, "audio", "pending")

    unchanged = registry.get(record.id)
    assert unchanged.video_status == "pending"
    assert unchanged.subtitle_status == "pending"


def test_set_status_unknown_record(registry):
    with pytest.raises(KeyError):
        registry.set_status(999, Track.VIDEO, VideoStatus.COMPLETED)


def test_set_source_path(registry, add_record):
    record = add_record(source_path="site@ABC-001.mp4")

    registry.set_source_path(record.id, "batch1/site@ABC-001.mp4")

    moved = registry.get(record.id)
    assert moved.source_path == "batch1/site@ABC-001.mp4"
    assert moved.original_name == record.original_name
    assert moved.video_status == "pending"

    with pytest.raises(KeyError):
        registry.set_source_path(999, "x.mp4")


def test_list_nonterminal(registry, add_record):
    pending = add_record()
    done = add_record(video_status="completed", subtitle_status="extracted")
    failed = add_record(video_status="failed", subtitle_status="failed")
    # legacy with nothing but a pending video track has no work left
    legacy_video_only = add_record(is_legacy=True, video_status="pending", subtitle_status="extracted")
    legacy_subtitle = add_record(is_legacy=True, video_status="completed", subtitle_status="pending")
    stale_processing = add_record(video_status="processing", subtitle_status="extracted")

    ids = [r.id for r in registry.list_nonterminal()]
    assert ids == [pending.id, legacy_subtitle.id, stale_processing.id]
    assert registry.count_nonterminal() == 3
    assert done.id not in ids and failed.id not in ids and legacy_video_only.id not in ids


def test_list_nonterminal_paging(registry, add_record):
    records = [add_record() for _ in range(5)]

    first = registry.list_nonterminal(limit=2, offset=0)
    rest = registry.list_nonterminal(limit=10, offset=2)
    assert [r.id for r in first + rest] == [r.id for r in records]


def test_merge_metadata_only_applies_populated_fields(registry, add_record):
    record = add_record()

    written = registry.merge_metadata(record.id, {
        "file_size": 1024,
        "duration_sec": 60.5,
        "resolution": "1920x1080",
        "video_encoder": "",
        "has_subtitle": False,
        "subtitle_formats": "none",
        "video_status": "completed",  # not a metadata field
    })
    assert written == ["duration_sec", "file_size", "resolution"]

    # empty and non-positive values never overwrite populated ones
    registry.merge_metadata(record.id, {
        "file_size": 0,
        "duration_sec": -1,
        "resolution": "  ",
        "has_subtitle": True,
        "subtitle_formats": "srt,ass",
    })

    merged = registry.get(record.id)
    assert merged.file_size == 1024
    assert merged.duration_sec == 60.5
    assert merged.resolution == "1920x1080"
    assert merged.video_encoder is None
    assert merged.has_subtitle is True
    assert merged.subtitle_formats == "srt,ass"
    assert merged.video_status == "pending"


def test_merge_metadata_nothing_to_write(registry, add_record):
    record = add_record()
    assert registry.merge_metadata(record.id, {"file_size": 0, "resolution": ""}) == []


def test_process_logs_are_appended(registry, add_record):
    record = add_record()
    registry.log_process(ProcessLog(file_id=record.id, operation="subtitle", output_path="/out/a.srt", duration_sec=1.0))
    registry.log_process(ProcessLog(file_id=record.id, operation="video", error_log="boom", duration_sec=2.0))

    logs = registry.logs_for(record.id)
    assert [log.operation for log in logs] == ["subtitle", "video"]
    assert logs[1].error_log == "boom"


def test_query_files_filters_and_sorting(registry, add_record):
    a = add_record("site@AAA-001.mp4", cleaned_name="AAA-001.mp4")
    b = add_record("site@BBB-002.mp4", cleaned_name="BBB-002.mp4", video_status="completed", subtitle_status="extracted")
    c = add_record("other@CCC-003.mkv", cleaned_name="CCC-003.mkv", video_status="failed", subtitle_status="extracted")

    by_name = registry.query_files(sort_by="cleaned_name", sort_order="ASC")
    assert [r.id for r in by_name] == [a.id, b.id, c.id]

    # unknown sort columns fall back to created_at
    assert len(registry.query_files(sort_by="file_hash; drop table")) == 3

    assert [r.id for r in registry.query_files(status="pending")] == [a.id]
    assert [r.id for r in registry.query_files(status="failed")] == [c.id]
    assert {r.id for r in registry.query_files(status="extracted")} == {b.id, c.id}
    assert [r.id for r in registry.query_files(search="other@")] == [c.id]
    assert registry.count_files(search="site@") == 2
    assert registry.count_files(status="pending") == 1


def test_find_by_cleaned_prefix(registry, add_record):
    add_record(cleaned_name="FNS-075.mp4")
    add_record(cleaned_name="VDO-001-pt1.mkv")

    assert registry.find_by_cleaned_prefix("FNS-075").cleaned_name == "FNS-075.mp4"
    assert registry.find_by_cleaned_prefix("VDO-001").cleaned_name == "VDO-001-pt1.mkv"
    assert registry.find_by_cleaned_prefix("ABC-999") is None
    # like wildcards in the input are literal
    assert registry.find_by_cleaned_prefix("%") is None


def test_settings_roundtrip(registry):
    assert registry.get_setting("schedule.stop") is None
    registry.set_setting("schedule.stop", "07:30")
    assert registry.get_setting("schedule.stop") == "07:30"
    registry.set_settings([("schedule.stop", None), ("schedule.start", "22:00")])
    assert registry.get_setting("schedule.stop") is None
    assert registry.get_setting("schedule.start") == "22:00"


def test_ping(registry):
    assert registry.ping() is True
