import os

# keep tests off the real database, redis and log dir
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = ""
os.environ["LOG_DIR"] = ""

import asyncio
from datetime import datetime, timedelta

import pytest
from sqlmodel import SQLModel, create_engine
from sqlmodel.pool import StaticPool

from nightshift import models  # noqa: F401
from nightshift.core.errors import MediaOperationError
from nightshift.models import FileRecord
from nightshift.services.ffmpeg import OperationResult
from nightshift.services.registry import Registry


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: int = 0, seconds: int = 0):
        self.now = self.now + timedelta(minutes=minutes, seconds=seconds)


class FakeMediaOps:
    """
    in-process stand-in for the ffmpeg collaborator

    fail_on: set of (operation, original_name) pairs that raise
    before_call: optional callable(operation, record) run at the start of each call
    gate: optional asyncio.Event every call waits on
    """

    def __init__(self):
        self.calls = []
        self.paths = []
        self.fail_on = set()
        self.before_call = None
        self.gate = None
        self.in_flight = 0
        self.max_in_flight = 0

    async def _call(self, operation: str, source_path: str, record: FileRecord) -> OperationResult:
        self.calls.append((operation, record.original_name))
        self.paths.append(source_path)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.before_call:
                self.before_call(operation, record)
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
            if (operation, record.original_name) in self.fail_on:
                raise MediaOperationError(f"{operation} failed for {record.original_name}")
            return OperationResult(output_path=f"/out/{record.cleaned_name}.{operation}")
        finally:
            self.in_flight -= 1

    async def extract_subtitles(self, source_path, record):
        return await self._call("subtitle", source_path, record)

    async def transcode(self, source_path, record):
        return await self._call("video", source_path, record)


@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="registry")
def registry_fixture(engine):
    return Registry(engine)


@pytest.fixture(name="media_ops")
def media_ops_fixture():
    return FakeMediaOps()


@pytest.fixture(name="clock")
def clock_fixture():
    # inside the default 00:00-08:50 window
    return FakeClock(datetime(2026, 10, 19, 2, 0))


@pytest.fixture(name="add_record")
def add_record_fixture(registry):
    counter = {"n": 0}

    def add(original_name=None, **fields):
        counter["n"] += 1
        n = counter["n"]
        original_name = original_name or f"site@ABC-{n:03d}.mp4"
        record = FileRecord(
            original_name=original_name,
            cleaned_name=fields.pop("cleaned_name", f"ABC-{n:03d}.mp4"),
            file_hash=fields.pop("file_hash", f"hash-{n}"),
            **fields,
        )
        registry.insert(record)
        return record

    return add
