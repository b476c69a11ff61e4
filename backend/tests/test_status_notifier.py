import asyncio
import json

from nightshift.core.errors import RegistryUnavailableError
from nightshift.services.status_notifier import StatusNotifier


class SchedulerState:
    def __init__(self, active=False):
        self.active = active


class FakeSocket:
    def __init__(self, broken=False):
        self.broken = broken
        self.sent = []

    async def send_text(self, text):
        if self.broken:
            raise RuntimeError("connection closed")
        self.sent.append(json.loads(text))


def test_snapshot_counts_nonterminal_records(registry, add_record):
    add_record()
    add_record(is_legacy=True, video_status="completed")
    add_record(video_status="completed", subtitle_status="extracted")
    notifier = StatusNotifier(registry, SchedulerState(active=True))

    assert notifier.snapshot() == {"pendingCount": 2, "processingActive": True}


def test_broadcast_reaches_every_client_and_drops_dead_ones(registry, add_record):
    add_record()
    notifier = StatusNotifier(registry, SchedulerState())
    alive, dead = FakeSocket(), FakeSocket(broken=True)
    notifier.register(alive)
    notifier.register(dead)

    remaining = asyncio.run(notifier.broadcast())

    assert remaining == 1
    assert alive.sent == [{"type": "status_update", "pendingCount": 1, "processingActive": False}]
    assert dead not in notifier.connections


def test_broadcast_without_clients_skips_the_query():
    class UnusedRegistry:
        def count_nonterminal(self):
            raise AssertionError("should not be queried")

    notifier = StatusNotifier(UnusedRegistry(), SchedulerState())
    assert asyncio.run(notifier.broadcast()) == 0


def test_run_survives_an_unavailable_registry():
    class FlakyRegistry:
        calls = 0

        def count_nonterminal(self):
            FlakyRegistry.calls += 1
            if FlakyRegistry.calls == 1:
                raise RegistryUnavailableError("locked")
            return 3

    notifier = StatusNotifier(FlakyRegistry(), SchedulerState())
    socket = FakeSocket()
    notifier.register(socket)

    async def main():
        task = asyncio.create_task(notifier.run(interval=0.01))
        while not socket.sent:
            await asyncio.sleep(0.01)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    asyncio.run(asyncio.wait_for(main(), timeout=5))

    assert socket.sent[0]["pendingCount"] == 3
    assert FlakyRegistry.calls >= 2
