"""
registry: the store access contract the pipeline runs on

the UNIQUE constraint on files_registry.file_hash is the only concurrency
guard for inserts; there is no application lock around find/insert.
"""
from datetime import datetime
from typing import Iterable, List, Optional, Union

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, and_, or_, select

from nightshift.core.errors import DuplicateHashError, RegistryUnavailableError
from nightshift.core.logging_config import get_logger
from nightshift.models import (
    FileRecord,
    ProcessLog,
    SubtitleStatus,
    SystemSetting,
    Track,
    VideoStatus,
)

logger = get_logger(__name__)

SORTABLE_COLUMNS = {
    "id",
    "original_name",
    "cleaned_name",
    "video_status",
    "subtitle_status",
    "is_legacy",
    "file_size",
    "duration_sec",
    "created_at",
    "updated_at",
}
DEFAULT_SORT = "created_at"

# fields merge_metadata will touch
METADATA_FIELDS = (
    "file_size",
    "duration_sec",
    "resolution",
    "video_encoder",
    "has_subtitle",
    "subtitle_formats",
)


def nonterminal_clause():
    """records that still have work on at least one track"""
    return or_(
        FileRecord.subtitle_status == SubtitleStatus.PENDING.value,
        and_(
            FileRecord.video_status.in_([VideoStatus.PENDING.value, VideoStatus.PROCESSING.value]),
            FileRecord.is_legacy == False,  # noqa: E712
        ),
    )


def _status_value(track: Track, status: Union[str, VideoStatus, SubtitleStatus]) -> str:
    enum_cls = VideoStatus if track == Track.VIDEO else SubtitleStatus
    # raises ValueError for anything outside the track's enum
    return enum_cls(status).value


def _mergeable(field: str, value) -> bool:
    if value is None:
        return False
    if field == "has_subtitle":
        return value is True or value == 1
    if field == "subtitle_formats" and str(value).strip().lower() == "none":
        return False
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return value > 0
    return bool(str(value).strip())


class Registry:
    def __init__(self, engine):
        self.engine = engine

    def _session(self) -> Session:
        return Session(self.engine, expire_on_commit=False)

    # lookups

    def get(self, file_id: int) -> Optional[FileRecord]:
        with self._session() as session:
            return session.get(FileRecord, file_id)

    def find_by_hash(self, file_hash: str) -> Optional[FileRecord]:
        try:
            with self._session() as session:
                return session.exec(
                    select(FileRecord).where(FileRecord.file_hash == file_hash)
                ).first()
        except SQLAlchemyError as e:
            raise RegistryUnavailableError(str(e)) from e

    def find_by_cleaned_name(self, cleaned_name: str) -> Optional[FileRecord]:
        with self._session() as session:
            return session.exec(
                select(FileRecord).where(FileRecord.cleaned_name == cleaned_name)
            ).first()

    def find_by_cleaned_prefix(self, prefix: str) -> Optional[FileRecord]:
        """first record whose cleaned_name starts with prefix"""
        with self._session() as session:
            return session.exec(
                select(FileRecord)
                .where(FileRecord.cleaned_name.startswith(prefix, autoescape=True))
                .order_by(FileRecord.id)
            ).first()

    # writes

    def insert(self, record: FileRecord) -> int:
        """
        insert a new record and return its id
        raises DuplicateHashError when another record already owns the hash
        """
        with self._session() as session:
            session.add(record)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise DuplicateHashError(record.file_hash) from e
            session.refresh(record)
            return record.id

    def set_status(self, file_id: int, track: Union[str, Track], status) -> None:
        """update one track's status; the other track is never touched"""
        track = Track(track)
        value = _status_value(track, status)
        column = "video_status" if track == Track.VIDEO else "subtitle_status"

        with self._session() as session:
            record = session.get(FileRecord, file_id)
            if not record:
                raise KeyError(f"file record {file_id} not found")
            setattr(record, column, value)
            record.updated_at = datetime.utcnow()
            session.add(record)
            session.commit()

    def set_source_path(self, file_id: int, source_path: str) -> None:
        """point a record at the place its file was last seen"""
        with self._session() as session:
            record = session.get(FileRecord, file_id)
            if not record:
                raise KeyError(f"file record {file_id} not found")
            record.source_path = source_path
            record.updated_at = datetime.utcnow()
            session.add(record)
            session.commit()

    def merge_metadata(self, file_id: int, fields: dict) -> List[str]:
        """
        apply only populated incoming fields: positive numbers, non-empty strings,
        has_subtitle only when true. returns the names of the fields written
        """
        updates = {
            key: value for key, value in fields.items()
            if key in METADATA_FIELDS and _mergeable(key, value)
        }
        if not updates:
            return []

        with self._session() as session:
            record = session.get(FileRecord, file_id)
            if not record:
                raise KeyError(f"file record {file_id} not found")
            for key, value in updates.items():
                setattr(record, key, bool(value) if key == "has_subtitle" else value)
            record.updated_at = datetime.utcnow()
            session.add(record)
            session.commit()
        return sorted(updates)

    def log_process(self, entry: ProcessLog) -> int:
        with self._session() as session:
            session.add(entry)
            session.commit()
            session.refresh(entry)
            return entry.id

    def logs_for(self, file_id: int) -> List[ProcessLog]:
        with self._session() as session:
            return list(session.exec(
                select(ProcessLog)
                .where(ProcessLog.file_id == file_id)
                .order_by(ProcessLog.id)
            ).all())

    # queue views

    def list_nonterminal(self, limit: int = 50, offset: int = 0) -> List[FileRecord]:
        try:
            with self._session() as session:
                return list(session.exec(
                    select(FileRecord)
                    .where(nonterminal_clause())
                    .order_by(FileRecord.id)
                    .offset(offset)
                    .limit(limit)
                ).all())
        except SQLAlchemyError as e:
            raise RegistryUnavailableError(str(e)) from e

    def count_nonterminal(self) -> int:
        try:
            with self._session() as session:
                return session.exec(
                    select(func.count()).select_from(FileRecord).where(nonterminal_clause())
                ).one()
        except SQLAlchemyError as e:
            raise RegistryUnavailableError(str(e)) from e

    # dashboard reads

    def _filters(self, status: Optional[str], search: Optional[str]) -> list:
        conditions = []
        if status == "pending":
            conditions.append(nonterminal_clause())
        elif status:
            conditions.append(
                or_(FileRecord.video_status == status, FileRecord.subtitle_status == status)
            )
        if search:
            conditions.append(
                or_(
                    FileRecord.original_name.contains(search, autoescape=True),
                    FileRecord.cleaned_name.contains(search, autoescape=True),
                )
            )
        return conditions

    def query_files(
        self,
        limit: int = 50,
        offset: int = 0,
        sort_by: str = DEFAULT_SORT,
        sort_order: str = "DESC",
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[FileRecord]:
        if sort_by not in SORTABLE_COLUMNS:
            sort_by = DEFAULT_SORT
        column = getattr(FileRecord, sort_by)
        ordering = column.asc() if str(sort_order).upper() == "ASC" else column.desc()

        query = select(FileRecord)
        conditions = self._filters(status, search)
        if conditions:
            query = query.where(and_(*conditions))
        query = query.order_by(ordering, FileRecord.id.desc()).offset(offset).limit(limit)

        with self._session() as session:
            return list(session.exec(query).all())

    def count_files(self, status: Optional[str] = None, search: Optional[str] = None) -> int:
        query = select(func.count()).select_from(FileRecord)
        conditions = self._filters(status, search)
        if conditions:
            query = query.where(and_(*conditions))
        with self._session() as session:
            return session.exec(query).one()

    # settings

    def get_setting(self, key: str) -> Optional[str]:
        try:
            with self._session() as session:
                setting = session.get(SystemSetting, key)
                return setting.value if setting else None
        except SQLAlchemyError as e:
            raise RegistryUnavailableError(str(e)) from e

    def set_setting(self, key: str, value: Optional[str]) -> None:
        with self._session() as session:
            setting = session.get(SystemSetting, key) or SystemSetting(key=key)
            setting.value = value
            setting.updated_at = datetime.utcnow()
            session.add(setting)
            session.commit()

    def set_settings(self, values: Iterable[tuple]) -> None:
        with self._session() as session:
            for key, value in values:
                setting = session.get(SystemSetting, key) or SystemSetting(key=key)
                setting.value = value
                setting.updated_at = datetime.utcnow()
                session.add(setting)
            session.commit()

    def ping(self) -> bool:
        try:
            with self._session() as session:
                session.exec(select(FileRecord.id).limit(1)).all()
            return True
        except SQLAlchemyError as e:
            logger.warning(f"registry ping failed: {e}")
            return False
