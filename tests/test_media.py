"""Tests for media status sources, polling and image storage."""

import base64

import httpx
import pytest

from conftest import FakeMediaSource
from smartdisplay.common.exceptions import StorageError
from smartdisplay.core.commands import CommandType
from smartdisplay.core.state import MediaSnapshot
from smartdisplay.media.images import ImageStore
from smartdisplay.media.poller import MediaPoller
from smartdisplay.media.spotify import (
    API_BASE_URL,
    TOKEN_URL,
    SpotifyMediaSource,
    parse_currently_playing,
)

PLAYING = {
    "is_playing": True,
    "progress_ms": 42000,
    "item": {
        "name": "Song",
        "artists": [{"name": "Band"}, {"name": "Guest"}],
        "album": {"name": "Album", "images": [{"url": "https://i.scdn.co/cover"}]},
    },
}


class TestParsing:
    def test_playing_track(self):
        snapshot = parse_currently_playing(PLAYING)
        assert snapshot == MediaSnapshot(
            is_playing=True,
            title="Song",
            artist="Band",
            album="Album",
            cover_url="https://i.scdn.co/cover",
            progress_ms=42000,
        )

    def test_nothing_playing(self):
        assert parse_currently_playing(None) == MediaSnapshot()
        assert parse_currently_playing({"is_playing": False, "item": None}) == MediaSnapshot()

    def test_missing_artwork(self):
        data = {"is_playing": False, "item": {"name": "Song", "artists": [], "album": {}}}
        snapshot = parse_currently_playing(data)
        assert snapshot.title == "Song"
        assert snapshot.artist == ""
        assert snapshot.cover_url == ""


def spotify_source(handler, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SpotifyMediaSource("id", "secret", "refresh", client=client, **kwargs)


class TestSpotify:
    """Test the Spotify source against a mocked transport"""

    @pytest.mark.asyncio
    async def test_unconfigured_source(self):
        source = SpotifyMediaSource(None, None, None)
        assert not source.configured
        assert await source.poll() == MediaSnapshot()
        await source.close()

    @pytest.mark.asyncio
    async def test_poll_playing(self):
        requests = []

        def handler(request):
            requests.append(request)
            if str(request.url) == TOKEN_URL:
                return httpx.Response(200, json={"access_token": "abc", "expires_in": 3600})
            assert request.headers["Authorization"] == "Bearer abc"
            return httpx.Response(200, json=PLAYING)

        source = spotify_source(handler)
        snapshot = await source.poll()
        assert snapshot.title == "Song"

        # Token is cached between polls
        await source.poll()
        token_requests = [r for r in requests if str(r.url) == TOKEN_URL]
        assert len(token_requests) == 1
        assert str(requests[1].url) == f"{API_BASE_URL}/me/player/currently-playing"
        await source.close()

    @pytest.mark.asyncio
    async def test_no_content(self):
        def handler(request):
            if str(request.url) == TOKEN_URL:
                return httpx.Response(200, json={"access_token": "abc"})
            return httpx.Response(204)

        source = spotify_source(handler)
        assert await source.poll() == MediaSnapshot()
        await source.close()

    @pytest.mark.asyncio
    async def test_unreachable_returns_none(self):
        def handler(request):
            raise httpx.ConnectError("offline", request=request)

        source = spotify_source(handler)
        assert await source.poll() is None
        await source.close()

    @pytest.mark.asyncio
    async def test_token_failure_returns_none(self):
        def handler(request):
            return httpx.Response(400, json={"error": "invalid_grant"})

        source = spotify_source(handler)
        assert await source.poll() is None
        await source.close()

    @pytest.mark.asyncio
    async def test_unauthorized_refreshes_token(self):
        token_calls = []

        def handler(request):
            if str(request.url) == TOKEN_URL:
                token_calls.append(request)
                return httpx.Response(200, json={"access_token": f"t{len(token_calls)}"})
            if request.headers["Authorization"] == "Bearer t1":
                return httpx.Response(401)
            return httpx.Response(200, json=PLAYING)

        source = spotify_source(handler)
        assert await source.poll() is None
        assert (await source.poll()).title == "Song"
        assert len(token_calls) == 2
        await source.close()


class TestMediaPoller:
    """Test polling into the command queue"""

    @pytest.mark.asyncio
    async def test_poll_once_submits(self):
        submitted = []

        async def submit(command_type, data):
            submitted.append((command_type, data))

        snapshot = MediaSnapshot(title="Song")
        poller = MediaPoller(FakeMediaSource([snapshot]), submit)
        assert await poller.poll_once() == snapshot
        assert submitted == [(CommandType.MEDIA, {"snapshot": snapshot})]

    @pytest.mark.asyncio
    async def test_unreachable_source_skipped(self):
        submitted = []

        async def submit(command_type, data):
            submitted.append(command_type)

        poller = MediaPoller(FakeMediaSource([None]), submit)
        assert await poller.poll_once() is None
        assert submitted == []

    @pytest.mark.asyncio
    async def test_poller_feeds_store(self, command_queue, store):
        source = FakeMediaSource([MediaSnapshot(is_playing=True, title="Song")])
        poller = MediaPoller(source, command_queue.submit, interval=1)
        await command_queue.start()
        try:
            await poller.poll_once()
            await command_queue.join()
        finally:
            await command_queue.stop()
        assert store.get().media.title == "Song"

    @pytest.mark.asyncio
    async def test_stop_closes_source(self):
        async def submit(command_type, data):
            pass

        source = FakeMediaSource()
        poller = MediaPoller(source, submit, interval=1)
        await poller.start()
        assert poller.running
        await poller.stop()
        assert not poller.running
        assert source.closed


class TestImageStore:
    """Test image persistence"""

    def test_save_data_url(self, tmp_path):
        store = ImageStore(tmp_path / "uploads")
        payload = base64.b64encode(b"\xff\xd8jpeg").decode()
        url = store.save(f"data:image/jpeg;base64,{payload}")
        assert url.startswith("/uploads/display-")
        assert url.endswith(".jpg")
        saved = tmp_path / "uploads" / url.rsplit("/", 1)[1]
        assert saved.read_bytes() == b"\xff\xd8jpeg"

    def test_save_bare_base64_and_bytes(self, tmp_path):
        store = ImageStore(tmp_path)
        assert store.decode(base64.b64encode(b"png").decode()) == b"png"
        url = store.save(b"raw")
        assert (tmp_path / url.rsplit("/", 1)[1]).read_bytes() == b"raw"

    def test_invalid_base64(self, tmp_path):
        with pytest.raises(StorageError):
            ImageStore(tmp_path).save("data:image/png;base64,not base64!")

    def test_empty_image(self, tmp_path):
        with pytest.raises(StorageError):
            ImageStore(tmp_path).save(b"")

    def test_unwritable_directory(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(StorageError):
            ImageStore(blocker / "uploads").ensure_dir()
