"""Typed media payloads stored in the ``media_items.data`` column."""

from __future__ import annotations

from datetime import date, datetime
from typing import ClassVar, Iterator

from pydantic import BaseModel, Field, RootModel, model_validator

from suasor.models.media import MediaType

STRONG_ID_SOURCES: tuple[str, ...] = ("tmdb", "imdb", "tvdb", "musicbrainz")


class ExternalID(BaseModel):
    """Identifier for the item in a metadata source such as TMDB or IMDB."""
    source: str
    id: str


class ExternalIDs(RootModel[list[ExternalID]]):
    """External identifiers, at most one per source."""

    root: list[ExternalID] = Field(default_factory=list)

    @model_validator(mode="after")
    def _normalize(self) -> "ExternalIDs":
        by_source: dict[str, ExternalID] = {}
        for entry in self.root:
            source = entry.source.strip().lower()
            value = str(entry.id).strip()
            if not source or not value:
                continue
            by_source[source] = ExternalID(source=source, id=value)
        self.root = list(by_source.values())
        return self

    def __iter__(self) -> Iterator[ExternalID]:  # type: ignore[override]
        return iter(self.root)

    def __len__(self) -> int:
        return len(self.root)

    def __bool__(self) -> bool:
        return bool(self.root)

    @classmethod
    def from_mapping(cls, mapping: dict[str, object] | None) -> "ExternalIDs":
        ids = cls()
        for source, value in (mapping or {}).items():
            if value in (None, "", 0):
                continue
            ids.add_or_update(str(source), str(value))
        return ids

    def get_id(self, source: str) -> str:
        """Return the ID for ``source`` or an empty string."""
        normalized = source.lower()
        for entry in self.root:
            if entry.source == normalized:
                return entry.id
        return ""

    def add_or_update(self, source: str, value: str) -> None:
        normalized = source.strip().lower()
        cleaned = value.strip()
        if not normalized or not cleaned:
            return
        for entry in self.root:
            if entry.source == normalized:
                entry.id = cleaned
                return
        self.root.append(ExternalID(source=normalized, id=cleaned))

    def merge(self, other: "ExternalIDs") -> None:
        for entry in other:
            self.add_or_update(entry.source, entry.id)

    def strong(self) -> dict[str, str]:
        """Return only the identifiers trusted for cross-client matching."""
        return {entry.source: entry.id for entry in self.root if entry.source in STRONG_ID_SOURCES}

    def conflicts_with(self, other: "ExternalIDs") -> bool:
        """True when both sides carry a strong ID for one source with different values."""
        mine = self.strong()
        for source, value in other.strong().items():
            if source in mine and mine[source] != value:
                return True
        return False


class Rating(BaseModel):
    source: str
    value: float
    votes: int = 0


class Artwork(BaseModel):
    poster: str | None = None
    background: str | None = None
    banner: str | None = None
    thumbnail: str | None = None
    logo: str | None = None


class MediaDetails(BaseModel):
    """Common metadata fields shared by all payload types."""
    title: str = ""
    description: str | None = None
    release_date: date | None = None
    release_year: int | None = None
    added_at: datetime | None = None
    updated_at: datetime | None = None
    genres: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    studios: list[str] = Field(default_factory=list)
    external_ids: ExternalIDs = Field(default_factory=ExternalIDs)
    content_rating: str | None = None
    language: str | None = None
    ratings: list[Rating] = Field(default_factory=list)
    user_rating: float | None = None
    artwork: Artwork = Field(default_factory=Artwork)
    duration_seconds: int | None = None
    is_favorite: bool = False

    @model_validator(mode="after")
    def _derive_year(self) -> "MediaDetails":
        if self.release_year is None and self.release_date is not None:
            self.release_year = self.release_date.year
        return self


class MediaData(BaseModel):
    """Base payload; subclasses pin ``media_type``."""
    media_type: ClassVar[MediaType]

    details: MediaDetails = Field(default_factory=MediaDetails)


class Person(BaseModel):
    name: str
    role: str | None = None
    character: str | None = None


class Movie(MediaData):
    media_type: ClassVar[MediaType] = MediaType.MOVIE

    cast: list[Person] = Field(default_factory=list)
    crew: list[Person] = Field(default_factory=list)
    trailer_url: str | None = None
    resolution: str | None = None
    video_codec: str | None = None
    audio_codec: str | None = None
    subtitle_urls: list[str] = Field(default_factory=list)


class Series(MediaData):
    media_type: ClassVar[MediaType] = MediaType.SERIES

    season_count: int = 0
    episode_count: int = 0
    network: str | None = None
    status: str | None = None
    rating: float | None = None
    cast: list[Person] = Field(default_factory=list)


class Season(MediaData):
    media_type: ClassVar[MediaType] = MediaType.SEASON

    number: int = 0
    episode_count: int = 0
    series_name: str | None = None
    series_id: str | None = None


class Episode(MediaData):
    media_type: ClassVar[MediaType] = MediaType.EPISODE

    number: int = 0
    season_number: int = 0
    series_title: str | None = None
    series_id: str | None = None
    season_id: str | None = None


class Artist(MediaData):
    media_type: ClassVar[MediaType] = MediaType.ARTIST

    album_count: int = 0
    track_count: int = 0
    biography: str | None = None
    start_year: int | None = None
    end_year: int | None = None


class Album(MediaData):
    media_type: ClassVar[MediaType] = MediaType.ALBUM

    artist_name: str | None = None
    artist_id: str | None = None
    track_count: int = 0


class Track(MediaData):
    media_type: ClassVar[MediaType] = MediaType.TRACK

    number: int = 0
    disc_number: int = 0
    album_name: str | None = None
    album_id: str | None = None
    artist_name: str | None = None
    artist_id: str | None = None
    composer: str | None = None
    lyrics: str | None = None


class Playlist(MediaData):
    media_type: ClassVar[MediaType] = MediaType.PLAYLIST

    item_ids: list[str] = Field(default_factory=list)
    item_count: int = 0
    owner: str | None = None
    is_public: bool = False


class Collection(MediaData):
    media_type: ClassVar[MediaType] = MediaType.COLLECTION

    item_ids: list[str] = Field(default_factory=list)
    item_count: int = 0
    collection_type: str | None = None


MEDIA_DATA_TYPES: dict[MediaType, type[MediaData]] = {
    data_type.media_type: data_type
    for data_type in (Movie, Series, Season, Episode, Artist, Album, Track, Playlist, Collection)
}


def media_data_for(media_type: MediaType | str) -> type[MediaData]:
    """Return the payload class for a media type or raise ValueError."""
    try:
        return MEDIA_DATA_TYPES[MediaType(media_type)]
    except (KeyError, ValueError) as exc:
        raise ValueError(f"Unsupported media type {media_type}") from exc
