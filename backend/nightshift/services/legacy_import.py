"""
backfill of historical records that have no file in the drop folder

- filename lists: one name per line, stored with a null hash and deduplicated
  by cleaned_name
- metadata csv: filename,file_size_byte,duration_sec,resolution,video_encoder,
  has_subtitle,subtitle_formats; stored under a synthetic LEGACY_CSV_<name>
  hash so a re-import merges into the same row

both create legacy records: video completed, subtitle pending.
"""
import csv
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, TextIO

from nightshift.core.errors import DuplicateHashError
from nightshift.core.logging_config import get_logger
from nightshift.models import FileRecord, SubtitleStatus, Track, VideoStatus
from nightshift.services.identity import IdentityResolver, identity_resolver
from nightshift.services.registry import Registry

logger = get_logger(__name__)

LEGACY_HASH_PREFIX = "LEGACY_CSV_"
CSV_COLUMNS = [
    "filename",
    "file_size_byte",
    "duration_sec",
    "resolution",
    "video_encoder",
    "has_subtitle",
    "subtitle_formats",
]


@dataclass
class ImportReport:
    imported: int = 0
    updated: int = 0
    skipped: int = 0
    failed: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "imported": self.imported,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": len(self.failed),
        }


def legacy_hash(cleaned_name: str) -> str:
    return f"{LEGACY_HASH_PREFIX}{cleaned_name}"


def _legacy_record(original_name: str, cleaned_name: str, file_hash: Optional[str], **metadata) -> FileRecord:
    return FileRecord(
        original_name=original_name,
        cleaned_name=cleaned_name,
        file_hash=file_hash,
        video_status=VideoStatus.COMPLETED.value,
        subtitle_status=SubtitleStatus.PENDING.value,
        is_legacy=True,
        **metadata,
    )


def _to_int(value) -> int:
    try:
        return int(float(str(value).strip()))
    except (TypeError, ValueError):
        return 0


def _to_float(value) -> float:
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return 0.0


def csv_cleaned_name(filename: str, resolver: IdentityResolver) -> str:
    """csv rows carry no container; every csv record is stored as .mp4"""
    identity = resolver.match(filename, default_extension="mp4")
    if identity:
        return f"{identity.identity}.mp4"
    return f"{filename}.mp4"


def import_filename_list(
    registry: Registry,
    lines: Iterable[str],
    resolver: IdentityResolver = None,
) -> ImportReport:
    resolver = resolver or identity_resolver
    report = ImportReport()

    for line in lines:
        filename = line.strip()
        if not filename:
            continue

        cleaned_name = resolver.resolve(filename, default_extension="mp4")
        if cleaned_name is None:
            print(f"[NO MATCH] {filename}")
            report.failed.append(filename)
            continue

        if registry.find_by_cleaned_name(cleaned_name):
            print(f"[SKIPPED] {filename} (already in registry)")
            report.skipped += 1
            continue

        registry.insert(_legacy_record(filename, cleaned_name, None))
        print(f"[IMPORTED] {filename} -> {cleaned_name}")
        report.imported += 1

    logger.info(f"legacy list import completed: {report.to_dict()}")
    return report


def import_metadata_csv(
    registry: Registry,
    stream: TextIO,
    resolver: IdentityResolver = None,
) -> ImportReport:
    resolver = resolver or identity_resolver
    report = ImportReport()

    reader = csv.DictReader(stream)
    for row in reader:
        filename = (row.get("filename") or "").strip()
        if not filename:
            continue

        cleaned_name = csv_cleaned_name(filename, resolver)
        file_hash = legacy_hash(cleaned_name)
        has_subtitle = (row.get("has_subtitle") or "").strip().lower() == "yes"
        formats = (row.get("subtitle_formats") or "").strip()
        metadata = {
            "file_size": _to_int(row.get("file_size_byte")),
            "duration_sec": _to_float(row.get("duration_sec")),
            "resolution": (row.get("resolution") or "").strip(),
            "video_encoder": (row.get("video_encoder") or "").strip(),
            "has_subtitle": has_subtitle,
            "subtitle_formats": formats,
        }

        existing = registry.find_by_hash(file_hash)
        if existing:
            if _merge_into(registry, existing.id, metadata):
                report.updated += 1
            else:
                report.skipped += 1
            continue

        try:
            registry.insert(_legacy_record(
                filename,
                cleaned_name,
                file_hash,
                file_size=metadata["file_size"] or None,
                duration_sec=metadata["duration_sec"] or None,
                resolution=metadata["resolution"] or None,
                video_encoder=metadata["video_encoder"] or None,
                has_subtitle=has_subtitle,
                subtitle_formats=formats if formats and formats.lower() != "none" else None,
            ))
            report.imported += 1
        except DuplicateHashError:
            # same cleaned name twice in one file: treat the second row as an update
            existing = registry.find_by_hash(file_hash)
            if existing and _merge_into(registry, existing.id, metadata):
                report.updated += 1
            else:
                report.skipped += 1

    logger.info(f"legacy csv import completed: {report.to_dict()}")
    return report


def _merge_into(registry: Registry, file_id: int, metadata: dict) -> bool:
    written = registry.merge_metadata(file_id, metadata)
    if not written:
        return False
    # backfilled history is final on the video track
    registry.set_status(file_id, Track.VIDEO, VideoStatus.COMPLETED)
    return True
