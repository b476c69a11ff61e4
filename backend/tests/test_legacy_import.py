import io

from nightshift.scripts.import_legacy import main
from nightshift.services.legacy_import import (
    LEGACY_HASH_PREFIX,
    csv_cleaned_name,
    import_filename_list,
    import_metadata_csv,
)
from nightshift.services.identity import identity_resolver

HEADER = "filename,file_size_byte,duration_sec,resolution,video_encoder,has_subtitle,subtitle_formats\n"


def test_filename_list_creates_legacy_records(registry):
    lines = ["hhd800.com@FNS-075\n", "\n", "FNS-075.mp4\n", "ABC-001\n", "holiday\n"]

    report = import_filename_list(registry, lines)

    assert (report.imported, report.skipped, report.failed) == (2, 1, ["holiday"])
    record = registry.find_by_cleaned_name("FNS-075.mp4")
    assert record.is_legacy is True
    assert record.file_hash is None
    assert record.video_status == "completed"
    assert record.subtitle_status == "pending"


def test_filename_list_is_idempotent(registry):
    import_filename_list(registry, ["ABC-001"])
    report = import_filename_list(registry, ["ABC-001"])
    assert report.imported == 0
    assert report.skipped == 1
    assert registry.count_files() == 1


def test_csv_import_stores_metadata_under_a_synthetic_hash(registry):
    stream = io.StringIO(
        HEADER
        + "hhd800.com@FNS-075,1048576,3600.5,1920x1080,hevc,yes,\"srt,ass\"\n"
        + "random name,0,,,,no,none\n"
    )

    report = import_metadata_csv(registry, stream)

    assert report.imported == 2
    record = registry.find_by_hash(f"{LEGACY_HASH_PREFIX}FNS-075.mp4")
    assert record.cleaned_name == "FNS-075.mp4"
    assert record.file_size == 1048576
    assert record.duration_sec == 3600.5
    assert record.resolution == "1920x1080"
    assert record.has_subtitle is True
    assert record.subtitle_formats == "srt,ass"
    assert record.is_legacy is True

    bare = registry.find_by_hash(f"{LEGACY_HASH_PREFIX}random name.mp4")
    assert bare.file_size is None
    assert bare.subtitle_formats is None
    assert bare.has_subtitle is False


def test_csv_reimport_merges_populated_fields_only(registry):
    import_metadata_csv(registry, io.StringIO(HEADER + "FNS-075,100,,,,no,\n"))
    report = import_metadata_csv(registry, io.StringIO(
        HEADER
        + "FNS-075,0,42.0,1280x720,,yes,srt\n"
        + "FNS-075,0,,,,,\n"
    ))

    assert report.updated == 1
    assert report.skipped == 1
    assert registry.count_files() == 1
    record = registry.find_by_cleaned_name("FNS-075.mp4")
    assert record.file_size == 100
    assert record.duration_sec == 42.0
    assert record.resolution == "1280x720"
    assert record.has_subtitle is True


def test_csv_names_are_always_mp4():
    assert csv_cleaned_name("site@vdo-001-PT1", identity_resolver) == "VDO-001-pt1.mp4"
    assert csv_cleaned_name("VDO-002.mkv", identity_resolver) == "VDO-002.mp4"
    assert csv_cleaned_name("unmatched", identity_resolver) == "unmatched.mp4"


def test_cli_reports_missing_input(tmp_path, monkeypatch):
    monkeypatch.setattr("nightshift.scripts.import_legacy.init_db", lambda: None)
    assert main(["list", str(tmp_path / "missing.txt")]) == 1
