"""Spotify new-releases connector (client-credentials flow) using httpx."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import httpx
import structlog
from tenacity import retry, stop_after_attempt, wait_exponential

from gifview.connectors.base import BaseConnector, QueueItem
from gifview.connectors.spotify.config import NEW_RELEASES_URL, TOKEN_URL, SpotifyConfig
from gifview.db import now_iso
from gifview.enums import PostSource
from gifview.errors import ConfigurationError, UpstreamError
from gifview.models import NormalizedPost, SourceConfig

ALBUM_ART_MEDIA_TYPE = "album_art"
PROCESSING_VERSION = "1.0.0"

_RELEASE_DATE_FORMATS = ("%Y-%m-%d", "%Y-%m", "%Y")


def _should_retry(retry_state) -> bool:
    exc = retry_state.outcome.exception()
    return isinstance(exc, UpstreamError) and exc.status_code in (429, 503)


@retry(
    retry=_should_retry,
    stop=stop_after_attempt(4),
    wait=wait_exponential(multiplier=1, min=2, max=30),
    reraise=True,
)
def _request_json(client: httpx.Client, method: str, url: str, error_prefix: str, **kwargs) -> dict:
    try:
        resp = client.request(method, url, **kwargs)
    except httpx.HTTPError as exc:
        raise UpstreamError(f"{error_prefix}: {exc}") from exc
    if resp.status_code >= 400:
        raise UpstreamError(f"{error_prefix}: {resp.status_code} - {resp.text}", status_code=resp.status_code)
    return resp.json()


def release_date_iso(release_date: str | None) -> str | None:
    """Spotify release dates come at year, month or day precision."""
    if not release_date:
        return None
    for fmt in _RELEASE_DATE_FORMATS:
        try:
            return datetime.strptime(release_date, fmt).replace(tzinfo=UTC).isoformat()
        except ValueError:
            continue
    return None


def album_description(album: dict[str, Any]) -> str:
    artists = album.get("artists") or []
    primary_artist = artists[0].get("name") if artists else None
    primary_artist = primary_artist or "Unknown Artist"
    total_tracks = album.get("total_tracks", 0)
    if album.get("label"):
        return f"{album['label']} • {total_tracks} tracks • {primary_artist}"
    return f"{total_tracks} tracks • {primary_artist}"


def album_content(album: dict[str, Any]) -> str:
    """Plain-text summary used as the post body."""
    artists = ", ".join(a.get("name", "") for a in album.get("artists") or [])
    lines = [
        f"Album: {album.get('name', '')}",
        f"Artists: {artists}",
        f"Type: {album.get('album_type', '')}",
        f"Release Date: {album.get('release_date', '')}",
        f"Total Tracks: {album.get('total_tracks', 0)}",
    ]
    if album.get("genres"):
        lines.append(f"Genre: {', '.join(album['genres'])}")
    if album.get("label"):
        lines.append(f"Label: {album['label']}")
    if album.get("popularity"):
        lines.append(f"Popularity: {album['popularity']}/100")
    return "\n".join(lines)


def album_art_metadata(album: dict[str, Any], image: dict[str, Any]) -> dict[str, Any]:
    width = image.get("width") or 0
    height = image.get("height") or 0
    artists = album.get("artists") or []
    return {
        "height": height,
        "width": width,
        "source_url": image.get("url"),
        "file_type": "image",
        "mime_type": "image/jpeg",
        "quality": "high",
        "orientation": "landscape" if width > height else "portrait",
        "aspect_ratio": f"{width / height:.2f}" if height else None,
        "spotify_id": album.get("id"),
        "spotify_uri": f"spotify:album:{album.get('id')}",
        "spotify_external_url": (album.get("external_urls") or {}).get("spotify"),
        "spotify_popularity": album.get("popularity") or 0,
        "spotify_available_markets": album.get("available_markets") or [],
        "title": album.get("name"),
        "artist": ", ".join(a.get("name", "") for a in artists),
        "album": album.get("name"),
        "genre": album.get("genres") or [],
        "label": album.get("label"),
        "release_date": album.get("release_date"),
        "track_count": album.get("total_tracks"),
        "processed_at": now_iso(),
        "processing_version": PROCESSING_VERSION,
        "copyright": album.get("copyrights") or [],
        "spotify_artists": artists,
        "spotify_images": album.get("images") or [],
        "spotify_album_type": album.get("album_type"),
    }


class SpotifyConnector(BaseConnector[dict, SpotifyConfig]):
    """Stores newly released albums as posts, with their cover art as post media.

    Type config: ``"spotify"`` or ``{"spotify": {"market": "US", "max_size": 5}}``.
    """

    type = "spotify"
    name = "Spotify New Releases"
    log_name = "spotify"
    options_model = SpotifyConfig

    def __init__(self, repos, *, client_id: str = "", client_secret: str = "", **kwargs) -> None:
        super().__init__(repos, **kwargs)
        self.client_id = client_id
        self.client_secret = client_secret

    def authenticate(self, config: SourceConfig | None = None) -> str:
        """Exchange the client credentials for a bearer token."""
        if not self.client_id or not self.client_secret:
            raise ConfigurationError(
                "Spotify credentials not configured. Set GIFVIEW_SPOTIFY_CLIENT_ID and GIFVIEW_SPOTIFY_CLIENT_SECRET."
            )
        self.log.info("spotify.requesting_token")
        with self._client() as client:
            data = _request_json(
                client,
                "POST",
                TOKEN_URL,
                "Spotify auth failed",
                auth=(self.client_id, self.client_secret),
                data={"grant_type": "client_credentials"},
            )
        token = data.get("access_token")
        if not token:
            raise UpstreamError("Spotify auth failed: no access_token in response")
        return token

    def fetch_items(
        self, config: SourceConfig, options: SpotifyConfig, log: structlog.stdlib.BoundLogger
    ) -> tuple[list[dict], int]:
        token = self.authenticate(config)
        log.info("spotify.fetching_new_releases", limit=options.max_size, market=options.market)
        with self._client() as client:
            data = _request_json(
                client,
                "GET",
                NEW_RELEASES_URL,
                "Spotify API error",
                params={"limit": options.max_size, "country": options.market},
                headers={"Authorization": f"Bearer {token}"},
            )
        albums = list((data.get("albums") or {}).get("items") or [])
        log.info("spotify.new_releases_fetched", count=len(albums))
        return albums[: options.max_size], len(albums)

    def describe_item(self, payload: dict) -> str:
        return payload.get("name") or payload.get("id") or "?"

    def build_post(self, album: dict[str, Any], connector_id: str) -> NormalizedPost:
        publishing_date = release_date_iso(album.get("release_date"))
        if publishing_date is None and album.get("release_date"):
            self.log.warning("spotify.invalid_release_date", release_date=album.get("release_date"))
        return NormalizedPost(
            title=album.get("name"),
            description=album_description(album),
            topic=album.get("album_type"),
            tags=list(album.get("genres") or []),
            source_link=(album.get("external_urls") or {}).get("spotify"),
            source_key=album.get("id"),
            source_name=PostSource.SPOTIFY.value,
            publishing_date=publishing_date,
            content=album_content(album),
            connector_id=connector_id,
            language="en",
        )

    def process_item(self, item: QueueItem[dict]) -> None:
        album = item.payload
        post = self.build_post(album, item.connector_id)

        if self._already_stored(post.source_link, post.source_key):
            self.log.info("spotify.already_exists", album=album.get("name"))
            return

        post_id = self._store_post(post)
        if post_id is None:
            return

        images = album.get("images") or []
        if images:
            # Spotify lists the largest rendition first
            art = images[0]
            self.repos.post_media.insert(
                post_id=post_id,
                media_type=ALBUM_ART_MEDIA_TYPE,
                media_url=art.get("url"),
                metadata=album_art_metadata(album, art),
            )
            self.log.info("spotify.album_art_saved", post_id=post_id, album=album.get("name"))
