import asyncio
from datetime import datetime, timedelta, timezone

from sugvoyage.catalog.store import CatalogStore
from sugvoyage.domain.models import Spot
from sugvoyage.proximity.cooldown import CooldownGate
from sugvoyage.proximity.emitter import DiscoveryEngine, PushNotifier
from sugvoyage.proximity.tracker import LocationTracker

T0 = datetime(2026, 1, 5, 2, 0, tzinfo=timezone.utc)
HOME_LAT, HOME_LON = 10.3157, 123.8854
M_PER_DEG_LAT = 111_194.93


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class StubCatalog:
    def __init__(self, spots):
        self.spots = list(spots)

    def get_all_spots(self):
        return list(self.spots)


class RecordingTransport:
    def __init__(self):
        self.sent = []

    async def send(self, payload):
        await asyncio.sleep(0)
        self.sent.append(payload)


class ClosedTransport:
    async def send(self, payload):
        raise RuntimeError("Cannot call send once a close message has been sent")


def _spot_north(spot_id: str, meters: float) -> Spot:
    return Spot(id=spot_id, name=f"Spot {spot_id}", latitude=HOME_LAT + meters / M_PER_DEG_LAT, longitude=HOME_LON)


def _notifier(spots, clock, *, provider=None, cooldown=5.0) -> PushNotifier:
    tracker = LocationTracker(clock=clock)
    store = CatalogStore(provider or StubCatalog(spots), refresh_seconds=60, fetch_timeout_seconds=1, clock=clock)
    engine = DiscoveryEngine(tracker=tracker, catalog=store, gate=CooldownGate.from_seconds(cooldown), clock=clock)
    return PushNotifier(engine, default_radius_m=1000, max_spots_in_payload=5)


def test_two_reports_within_cooldown_emit_one_discovery():
    clock = FakeClock(T0)
    notifier = _notifier([_spot_north("A", 500), _spot_north("B", 1500)], clock)
    transport = RecordingTransport()
    notifier.connect("s1", transport)

    async def scenario():
        first = await notifier.handle_report("s1", HOME_LAT, HOME_LON, 1000)
        clock.advance(2)
        second = await notifier.handle_report("s1", HOME_LAT + 0.0001, HOME_LON, 1000)
        return first, second

    first, second = asyncio.run(scenario())

    assert first is not None and second is None
    assert len(transport.sent) == 1
    payload = transport.sent[0]
    assert payload.count == 1
    assert payload.nearest_spot == "Spot A"
    assert notifier.tracker.get_session("s1").last_notified_at == T0


def test_report_after_cooldown_emits_again():
    clock = FakeClock(T0)
    notifier = _notifier([_spot_north("A", 500)], clock)
    transport = RecordingTransport()
    notifier.connect("s1", transport)

    async def scenario():
        await notifier.handle_report("s1", HOME_LAT, HOME_LON, 1000)
        clock.advance(5)
        return await notifier.handle_report("s1", HOME_LAT, HOME_LON, 1000)

    event = asyncio.run(scenario())
    assert event is not None
    assert event.triggered_at == T0 + timedelta(seconds=5)
    assert len(transport.sent) == 2


def test_concurrent_reports_for_one_session_emit_once():
    clock = FakeClock(T0)
    notifier = _notifier([_spot_north("A", 200)], clock)
    transport = RecordingTransport()
    notifier.connect("s1", transport)

    async def scenario():
        return await asyncio.gather(*(notifier.handle_report("s1", HOME_LAT, HOME_LON, 1000) for _ in range(10)))

    results = asyncio.run(scenario())
    assert sum(1 for r in results if r is not None) == 1
    assert len(transport.sent) == 1


def test_payload_reports_count_nearest_and_caps_spots():
    clock = FakeClock(T0)
    spots = [_spot_north(str(i), 100 * (8 - i)) for i in range(8)]
    notifier = _notifier(spots, clock)
    transport = RecordingTransport()
    notifier.connect("s1", transport)

    asyncio.run(notifier.handle_report("s1", HOME_LAT, HOME_LON, 1000))

    payload = transport.sent[0]
    wire = payload.model_dump(mode="json", by_alias=True)
    assert wire["event"] == "spot-in-radius"
    assert wire["message"] == "8 spot(s) found near you!"
    assert wire["count"] == 8
    assert wire["nearestSpot"] == "Spot 7"
    assert [s["id"] for s in wire["spots"]] == ["7", "6", "5", "4", "3"]


def test_nothing_in_range_sends_nothing_and_keeps_cooldown_untouched():
    clock = FakeClock(T0)
    notifier = _notifier([_spot_north("far", 5000)], clock)
    transport = RecordingTransport()
    notifier.connect("s1", transport)

    assert asyncio.run(notifier.handle_report("s1", HOME_LAT, HOME_LON, 1000)) is None
    assert transport.sent == []
    assert notifier.tracker.get_session("s1").last_notified_at is None


def test_default_radius_applies_when_report_has_none():
    clock = FakeClock(T0)
    notifier = _notifier([_spot_north("A", 900)], clock)
    notifier.connect("s1", RecordingTransport())

    event = asyncio.run(notifier.handle_report("s1", HOME_LAT, HOME_LON))
    assert event is not None
    assert notifier.tracker.get_session("s1").radius_m == 1000


def test_invalid_position_is_rejected_and_prior_position_kept():
    clock = FakeClock(T0)
    notifier = _notifier([_spot_north("far", 5000)], clock)
    notifier.connect("s1", RecordingTransport())

    async def scenario():
        await notifier.handle_report("s1", HOME_LAT, HOME_LON, 1000)
        return await notifier.handle_report("s1", 123.0, 10.0, 1000)

    assert asyncio.run(scenario()) is None
    session = notifier.tracker.get_session("s1")
    assert session.last_position.lat == HOME_LAT
    assert notifier.is_connected("s1")


def test_transport_failure_drops_the_session():
    clock = FakeClock(T0)
    notifier = _notifier([_spot_north("A", 100)], clock)
    notifier.connect("s1", ClosedTransport())

    assert asyncio.run(notifier.handle_report("s1", HOME_LAT, HOME_LON, 1000)) is None
    assert not notifier.is_connected("s1")
    assert notifier.tracker.get_session("s1") is None


def test_catalog_outage_skips_the_cycle():
    class BrokenCatalog:
        def get_all_spots(self):
            raise ConnectionError("database down")

    clock = FakeClock(T0)
    notifier = _notifier([], clock, provider=BrokenCatalog())
    transport = RecordingTransport()
    notifier.connect("s1", transport)

    assert asyncio.run(notifier.handle_report("s1", HOME_LAT, HOME_LON, 1000)) is None
    assert transport.sent == []
    assert notifier.is_connected("s1")


def test_disconnect_during_inflight_cycle_suppresses_notification():
    class GatedCatalog:
        def __init__(self):
            self.release = asyncio.Event()

        async def get_all_spots(self):
            await self.release.wait()
            return [_spot_north("A", 100)]

    clock = FakeClock(T0)

    async def scenario():
        provider = GatedCatalog()
        notifier = _notifier([], clock, provider=provider)
        transport = RecordingTransport()
        notifier.connect("s1", transport)

        task = asyncio.ensure_future(notifier.handle_report("s1", HOME_LAT, HOME_LON, 1000))
        for _ in range(5):
            await asyncio.sleep(0)
        notifier.disconnect("s1")
        provider.release.set()
        return await task, transport.sent, notifier

    result, sent, notifier = asyncio.run(scenario())
    assert result is None
    assert sent == []
    assert notifier.tracker.get_session("s1") is None


def test_reports_from_unknown_connections_are_ignored():
    notifier = _notifier([_spot_north("A", 100)], FakeClock(T0))
    assert asyncio.run(notifier.handle_report("ghost", HOME_LAT, HOME_LON, 1000)) is None
    assert len(notifier.tracker) == 0
