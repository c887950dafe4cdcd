"""Tests for the song update bus."""

from datetime import UTC, datetime, timedelta

from bandcatalog.application.services.metadata_broadcast import MetadataBroadcast
from bandcatalog.domain.entities import SongUpdateEvent


def _event(song_id: str, at: datetime, **fields) -> SongUpdateEvent:
    return SongUpdateEvent(song_id=song_id, changed_fields=fields, timestamp=at)


class TestMetadataBroadcast:
    """Test subscribe/publish semantics."""

    def test_only_watchers_receive_events(self) -> None:
        bus = MetadataBroadcast()
        received: list[SongUpdateEvent] = []
        other: list[SongUpdateEvent] = []
        bus.subscribe(received.append, ["song-1"])
        bus.subscribe(other.append, ["song-2"])

        delivered = bus.publish(_event("song-1", datetime.now(UTC), bpm=120))

        assert delivered == 1
        assert [e.changed_fields for e in received] == [{"bpm": 120}]
        assert other == []

    def test_stale_event_is_dropped(self) -> None:
        bus = MetadataBroadcast()
        received: list[SongUpdateEvent] = []
        bus.subscribe(received.append, ["song-1"])
        now = datetime.now(UTC)

        bus.publish(_event("song-1", now, bpm=120))
        delivered = bus.publish(_event("song-1", now - timedelta(seconds=5), bpm=90))

        assert delivered == 0
        assert [e.changed_fields["bpm"] for e in received] == [120]

    def test_failing_subscriber_does_not_block_others(self) -> None:
        bus = MetadataBroadcast()
        received: list[SongUpdateEvent] = []

        def broken(event: SongUpdateEvent) -> None:
            raise RuntimeError("boom")

        bus.subscribe(broken, ["song-1"])
        bus.subscribe(received.append, ["song-1"])

        delivered = bus.publish(_event("song-1", datetime.now(UTC), notes=None))

        assert delivered == 1
        assert len(received) == 1

    def test_cancel_and_replace(self) -> None:
        bus = MetadataBroadcast()
        subscription = bus.subscribe(lambda e: None, ["a", "b"])

        subscription.replace(["b", "c"])
        assert bus.subscriber_count("a") == 0
        assert bus.subscriber_count("c") == 1

        subscription.cancel()
        assert bus.subscriber_count("b") == 0
        assert bus.subscriber_count("c") == 0

        subscription.watch(["a"])
        assert bus.subscriber_count("a") == 0

    def test_removal_resets_staleness_tracking(self) -> None:
        bus = MetadataBroadcast()
        received: list[SongUpdateEvent] = []
        bus.subscribe(received.append, ["song-1"])
        now = datetime.now(UTC)

        bus.publish(
            SongUpdateEvent(song_id="song-1", changed_fields={}, timestamp=now, removed=True)
        )
        bus.publish(_event("song-1", now - timedelta(seconds=1), title="Back"))

        assert len(received) == 2
