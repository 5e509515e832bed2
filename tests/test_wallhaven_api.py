"""Tests for the Wallhaven API client."""

import pytest

from conftest import FakeResponse, FakeSession
from wallfetch.api.wallhaven_api import (
    BASE_URL,
    CATEGORY_NAMES,
    PURITY_NAMES,
    SearchParams,
    WallhavenAPI,
    WallhavenAPIError,
    to_flags,
)

SEARCH_URL = f"{BASE_URL}/search"

SEARCH_PAYLOAD = {
    "data": [
        {
            "id": "94x38z",
            "url": "https://wallhaven.cc/w/94x38z",
            "short_url": "https://whvn.cc/94x38z",
            "views": 12,
            "favorites": 0,
            "purity": "sfw",
            "category": "anime",
            "dimension_x": 6742,
            "dimension_y": 3534,
            "resolution": "6742x3534",
            "ratio": "1.91",
            "file_size": 5070446,
            "file_type": "image/jpeg",
            "created_at": "2018-10-31 01:23:10",
            "colors": ["#000000", "#abbcda"],
            "path": "https://w.wallhaven.cc/full/94/wallhaven-94x38z.jpg",
            "thumbs": {"large": "https://th.wallhaven.cc/lg/94/94x38z.jpg"},
        },
        {
            "id": "ze1p56",
            "resolution": "1920x1080",
            "path": "https://w.wallhaven.cc/full/ze/wallhaven-ze1p56.png",
        },
    ],
    "meta": {"current_page": 1, "last_page": 152, "per_page": "24", "total": 3631, "query": "test", "seed": None},
}


@pytest.mark.parametrize(
    "value, names, expected",
    [
        ("general,anime", CATEGORY_NAMES, "110"),
        ("people", CATEGORY_NAMES, "001"),
        ("General, People", CATEGORY_NAMES, "101"),
        ("sfw", PURITY_NAMES, "100"),
        ("sfw,sketchy,nsfw", PURITY_NAMES, "111"),
        ("010", CATEGORY_NAMES, "010"),
        ("bogus", CATEGORY_NAMES, "000"),
    ],
)
def test_to_flags(value, names, expected):
    assert to_flags(value, names) == expected


def test_build_query_includes_only_set_fields():
    api = WallhavenAPI(session=FakeSession())
    params = SearchParams(
        query="nature",
        categories="general,anime",
        purity="sfw",
        sorting="toplist",
        top_range="1M",
        at_least="1920x1080",
        ratios="16x9,21x9",
        page=3,
    )

    assert api.build_query(params) == {
        "q": "nature",
        "categories": "110",
        "purity": "100",
        "sorting": "toplist",
        "topRange": "1M",
        "atleast": "1920x1080",
        "ratios": "16x9,21x9",
        "page": "3",
    }


def test_build_query_adds_api_key():
    api = WallhavenAPI(api_key="secret", session=FakeSession())
    assert api.build_query(SearchParams())["apikey"] == "secret"


def test_search_parses_page():
    session = FakeSession({SEARCH_URL: FakeResponse(json_data=SEARCH_PAYLOAD)})
    api = WallhavenAPI(session=session)

    page = api.search(SearchParams(query="test"))

    assert [w.id for w in page.wallpapers] == ["94x38z", "ze1p56"]
    first = page.wallpapers[0]
    assert first.image_url == "https://w.wallhaven.cc/full/94/wallhaven-94x38z.jpg"
    assert first.resolution == "6742x3534"
    assert first.category == "anime"
    assert first.colors == ("#000000", "#abbcda")
    assert first.tags == ()
    assert (page.current_page, page.last_page, page.per_page, page.total) == (1, 152, 24, 3631)
    assert session.calls == [(SEARCH_URL, {"q": "test", "page": "1"})]


def test_get_wallpaper_includes_tags():
    url = f"{BASE_URL}/w/94x38z"
    payload = {"data": dict(SEARCH_PAYLOAD["data"][0], tags=[{"id": 1, "name": "anime"}, {"id": 2, "name": "sky"}])}
    api = WallhavenAPI(session=FakeSession({url: FakeResponse(json_data=payload)}))

    wallpaper = api.get_wallpaper("94x38z")

    assert wallpaper.tags == ("anime", "sky")


@pytest.mark.parametrize(
    "response, message",
    [
        (FakeResponse(status_code=429), "rate limit"),
        (FakeResponse(status_code=500), "status 500"),
        (FakeResponse(status_code=200), "Invalid JSON"),
        (FakeResponse(json_data=["not", "a", "mapping"]), "Unexpected search response"),
    ],
)
def test_search_errors(response, message):
    api = WallhavenAPI(session=FakeSession({SEARCH_URL: response}))
    with pytest.raises(WallhavenAPIError, match=message):
        api.search(SearchParams())


def test_transport_error(connection_error):
    api = WallhavenAPI(session=FakeSession({SEARCH_URL: connection_error}))
    with pytest.raises(WallhavenAPIError, match="Request failed"):
        api.search(SearchParams())
