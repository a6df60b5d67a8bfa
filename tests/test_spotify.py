"""Tests for the Spotify new-releases connector."""

from __future__ import annotations

import httpx
import pytest
import sqlalchemy as sa

from gifview.connectors.spotify.config import SpotifyConfig
from gifview.connectors.spotify.connector import SpotifyConnector, album_description, release_date_iso
from gifview.db import Post, PostMedia
from gifview.errors import ConfigurationError, UpstreamError
from gifview.models import SourceConfig

ALBUM = {
    "id": "alb1",
    "name": "Night Drive",
    "album_type": "album",
    "release_date": "2025-03-14",
    "total_tracks": 11,
    "label": "Neon Records",
    "genres": ["synthwave"],
    "popularity": 72,
    "artists": [{"name": "The Midnight"}, {"name": "Guest"}],
    "external_urls": {"spotify": "https://open.spotify.com/album/alb1"},
    "images": [
        {"url": "https://i.scdn.co/image/large", "width": 640, "height": 640},
        {"url": "https://i.scdn.co/image/small", "width": 64, "height": 64},
    ],
}


def _routes(albums=(ALBUM,), token_status: int = 200, requests: list | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        if request.url.host == "accounts.spotify.com":
            if token_status != 200:
                return httpx.Response(token_status, json={"error": "invalid_client"})
            return httpx.Response(200, json={"access_token": "tok", "token_type": "Bearer"})
        return httpx.Response(200, json={"albums": {"items": list(albums)}})

    return handler


@pytest.fixture
def make_connector(repos, log, http_factory):
    connectors = []

    def make(handler=None, client_id="id", client_secret="secret") -> SpotifyConnector:
        connector = SpotifyConnector(
            repos,
            client_id=client_id,
            client_secret=client_secret,
            wait_seconds=0,
            http_client_factory=http_factory(handler or _routes()),
            log=log,
        )
        connectors.append(connector)
        return connector

    yield make
    for connector in connectors:
        connector.close()


CONFIG = SourceConfig.from_raw("spotify-us", "spotify", 60, True)


class TestHelpers:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("2025-03-14", "2025-03-14T00:00:00+00:00"),
            ("2025-03", "2025-03-01T00:00:00+00:00"),
            ("2025", "2025-01-01T00:00:00+00:00"),
            ("soon", None),
            (None, None),
        ],
    )
    def test_release_date_iso(self, raw, expected):
        assert release_date_iso(raw) == expected

    def test_album_description(self):
        assert album_description(ALBUM) == "Neon Records • 11 tracks • The Midnight"
        assert album_description({"total_tracks": 3, "artists": []}) == "3 tracks • Unknown Artist"

    def test_config_clamps_limit(self):
        assert SpotifyConfig(max_size=500).max_size == 50
        assert SpotifyConfig(max_size=0).max_size == 5
        assert SpotifyConfig(market="gb").market == "GB"


class TestSpotifySync:
    def test_stores_album_and_cover_art(self, make_connector, engine):
        requests = []
        result = make_connector(_routes(requests=requests)).sync(CONFIG)

        assert result.queued == 1
        assert result.completion.result(timeout=10).processed == 1

        token_request, releases_request = requests[:2]
        assert token_request.method == "POST"
        assert releases_request.headers["Authorization"] == "Bearer tok"
        assert releases_request.url.params["limit"] == "5"
        assert releases_request.url.params["country"] == "US"

        with engine.connect() as conn:
            (post,) = conn.execute(sa.select(Post.__table__)).fetchall()
            (media,) = conn.execute(sa.select(PostMedia.__table__)).fetchall()

        assert post.title == "Night Drive"
        assert post.source_key == "alb1"
        assert post.source_link == "https://open.spotify.com/album/alb1"
        assert post.source_name == "spotify"
        assert post.topic == "album"
        assert post.tags == ["synthwave"]
        assert post.description == "Neon Records • 11 tracks • The Midnight"
        assert "Artists: The Midnight, Guest" in post.content
        assert post.publishing_date == "2025-03-14T00:00:00+00:00"

        assert media.post_id == post.id
        assert media.media_type == "album_art"
        assert media.media_url == "https://i.scdn.co/image/large"
        assert media._mapping["metadata"]["spotify_uri"] == "spotify:album:alb1"
        assert media._mapping["metadata"]["aspect_ratio"] == "1.00"
        assert media._mapping["metadata"]["orientation"] == "portrait"

    def test_known_album_is_skipped(self, make_connector, engine):
        connector = make_connector()
        connector.sync(CONFIG).completion.result(timeout=10)
        connector.sync(CONFIG).completion.result(timeout=10)

        with engine.connect() as conn:
            assert conn.execute(sa.select(sa.func.count()).select_from(Post)).scalar() == 1
            assert conn.execute(sa.select(sa.func.count()).select_from(PostMedia)).scalar() == 1

    def test_missing_credentials(self, make_connector):
        with pytest.raises(ConfigurationError):
            make_connector(client_id="", client_secret="").sync(CONFIG)

    def test_rejected_credentials(self, make_connector):
        with pytest.raises(UpstreamError) as exc_info:
            make_connector(_routes(token_status=401)).sync(CONFIG)
        assert exc_info.value.status_code == 401

    def test_no_releases(self, make_connector):
        result = make_connector(_routes(albums=())).sync(CONFIG)
        assert result.queued == 0
        assert result.message == "No Spotify New Releases items to process"
