"""Pydantic models describing the media-server metadata blobs."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import cast

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

log = logging.getLogger(__name__)


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


def _lenient_int(value: object) -> object:
    """Coerce numeric strings; anything unparseable becomes ``None``."""

    value = _blank_to_none(value)
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            return None
    return None


def _as_text(value: object) -> object:
    value = _blank_to_none(value)
    if isinstance(value, int | float) and not isinstance(value, bool):
        return str(value)
    return value


class PlexBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class GuidEntry(PlexBaseModel):
    id: str | None = None

    _normalize_id = field_validator("id", mode="before")(_blank_to_none)


class PlexMetadata(PlexBaseModel):
    """The subset of a Plex metadata item used for identity resolution."""

    type: str | None = None
    title: str | None = None
    year: int | None = None
    guid: str | None = None
    guids: list[GuidEntry] = Field(default_factory=list["GuidEntry"], alias="Guid")
    grandparent_title: str | None = Field(default=None, alias="grandparentTitle")
    show_title: str | None = Field(default=None, alias="showTitle")
    grandparent_rating_key: str | None = Field(default=None, alias="grandparentRatingKey")
    parent_index: int | None = Field(default=None, alias="parentIndex")
    index: int | None = None
    duration: int | None = None
    thumb: str | None = None
    grandparent_thumb: str | None = Field(default=None, alias="grandparentThumb")

    _normalize_text = field_validator(
        "type",
        "title",
        "guid",
        "grandparent_title",
        "show_title",
        "thumb",
        "grandparent_thumb",
        mode="before",
    )(_blank_to_none)
    _normalize_ints = field_validator("year", "parent_index", "index", "duration", mode="before")(
        _lenient_int
    )
    _normalize_rating_key = field_validator("grandparent_rating_key", mode="before")(_as_text)

    @field_validator("guids", mode="before")
    @classmethod
    def _wrap_single_guid(cls, value: object) -> object:
        # Servers emit a bare object instead of a list when there is one entry.
        if value is None:
            return []
        if isinstance(value, Mapping | str):
            value = [value]
        if isinstance(value, list):
            entries = cast(list[object], value)
            return [{"id": entry} if isinstance(entry, str) else entry for entry in entries]
        return value

    @property
    def series_name(self) -> str | None:
        return self.grandparent_title or self.show_title


def parse_metadata(raw: str | bytes | Mapping[str, object] | None) -> PlexMetadata:
    """Validate a metadata blob, returning an empty payload when it is unusable."""

    if raw is None or (isinstance(raw, str | bytes) and not raw.strip()):
        return PlexMetadata()
    try:
        if isinstance(raw, str | bytes):
            return PlexMetadata.model_validate_json(raw)
        return PlexMetadata.model_validate(raw)
    except ValidationError as exc:
        log.debug("Ignoring malformed metadata payload: %s", exc.errors(include_url=False))
        return PlexMetadata()
