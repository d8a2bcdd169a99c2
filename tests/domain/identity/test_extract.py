from __future__ import annotations

from mediaunion.domain.identity import extract_features, parse_metadata, parse_season_episode
from mediaunion.domain.model import ExternalNamespace, MediaType
from tests.helpers.catalog import guids, make_record


def test_subtitle_season_episode_is_recovered() -> None:
    record = make_record("srv", "ep-1", "The Fly")

    features = extract_features(record, subtitle="S02E05")

    assert features.media_type is MediaType.EPISODE
    assert (features.season, features.episode) == (2, 5)


def test_parse_season_episode_accepts_any_width_and_case() -> None:
    assert parse_season_episode("s1e100 - Finale") == (1, 100)
    assert parse_season_episode("Season two") is None
    assert parse_season_episode(None) is None


def test_structured_numbering_beats_subtitle() -> None:
    record = make_record(
        "srv",
        "ep-2",
        "Ozymandias",
        metadata={"grandparentTitle": "Breaking Bad", "parentIndex": "5", "index": 14},
    )

    features = extract_features(record, subtitle="S01E01")

    assert (features.season, features.episode) == (5, 14)
    assert features.series_name == "Breaking Bad"


def test_external_ids_are_stripped_and_later_entries_win() -> None:
    record = make_record(
        "srv",
        "1",
        "Inception",
        year=2010,
        metadata={"Guid": guids("imdb://tt0000001", "tmdb://27205", "imdb://tt1375666")},
    )

    features = extract_features(record)

    assert features.external_ids == {
        ExternalNamespace.IMDB: "tt1375666",
        ExternalNamespace.TMDB: "27205",
    }
    assert features.media_type is MediaType.MOVIE


def test_single_guid_object_and_top_level_plex_guid() -> None:
    record = make_record(
        "srv",
        "1",
        "Heat",
        metadata={"Guid": {"id": "tvdb://42"}, "guid": "plex://movie/5d776"},
    )

    features = extract_features(record)

    assert features.external_ids[ExternalNamespace.TVDB] == "42"
    assert features.external_ids[ExternalNamespace.PLEX] == "movie/5d776"


def test_malformed_metadata_degrades_to_empty_payload() -> None:
    record = make_record("srv", "1", "Heat", year=1995)
    record.raw_metadata = "{not json"

    features = extract_features(record)

    assert features.display_title == "Heat"
    assert features.year == 1995
    assert features.external_ids == {}
    assert parse_metadata("[1, 2]").title is None


def test_series_name_implies_episode_when_type_is_undeclared() -> None:
    record = make_record(
        "srv",
        "2",
        "Pilot",
        metadata={"showTitle": "The Office", "grandparentRatingKey": 100, "thumb": "/t/2"},
    )

    features = extract_features(record)

    assert features.media_type is MediaType.EPISODE
    assert features.series_name == "The Office"
    assert features.show_record_key == "100"
    assert features.poster_ref == "/t/2"
    assert not features.has_episode_numbering


def test_declared_type_wins_over_metadata() -> None:
    record = make_record(
        "srv",
        "3",
        "The Office",
        year=2005,
        media_type=MediaType.SHOW,
        metadata={"type": "episode", "grandparentTitle": "Other"},
    )

    features = extract_features(record)

    assert features.media_type is MediaType.SHOW
    assert features.series_name == "The Office"
    assert features.series_year == 2005
