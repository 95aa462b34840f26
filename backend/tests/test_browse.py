"""Catalog browsing over the catalog interface."""

import pytest

from conftest import FakeCatalog
from watchrebel.errors import UpstreamUnavailable, ValidationError
from watchrebel.services.browse import CatalogBrowser, image_url


@pytest.fixture
def browser(catalog):
    return CatalogBrowser(catalog)


async def test_popular_covers_both_kinds(browser):
    result = await browser.popular(page=2)

    assert [m["media_type"] for m in result["movies"]] == ["movie"]
    assert [t["media_type"] for t in result["tv"]] == ["tv"]
    assert result["page"] == 2
    assert (result["totalMoviePages"], result["totalTVResults"]) == (3, 60)


async def test_popular_single_kind(browser):
    result = await browser.popular("tv")
    assert result["movies"] == []
    assert "totalMoviePages" not in result
    assert len(result["tv"]) == 1


async def test_one_failing_kind_leaves_its_list_empty():
    browser = CatalogBrowser(FakeCatalog(fail_kinds=("movie",)))

    result = await browser.search("Игра")

    assert result["movies"] == []
    assert result["tv"][0]["query"] == "Игра"
    assert result["query"] == "Игра"


@pytest.mark.parametrize("query", [None, "", "   "])
async def test_search_requires_query(browser, query):
    with pytest.raises(ValidationError) as exc:
        await browser.search(query)
    assert exc.value.code == "MISSING_QUERY"


async def test_unknown_kind(browser):
    with pytest.raises(ValidationError) as exc:
        await browser.popular("book")
    assert exc.value.code == "INVALID_TYPE"


async def test_discover_passes_filters(browser, catalog):
    await browser.discover("movie", page=2, genres="18", year=1999, min_rating=7.0)

    [(media_type, filters)] = catalog.discovered
    assert media_type == "movie"
    assert filters == {"page": 2, "sort_by": "popularity.desc", "genres": "18", "year": 1999, "min_rating": 7.0}


@pytest.mark.parametrize("kind", [None, "all", "book"])
async def test_discover_needs_one_kind(browser, kind):
    with pytest.raises(ValidationError) as exc:
        await browser.discover(kind)
    assert exc.value.code == "INVALID_TYPE"


async def test_discover_failure_propagates():
    with pytest.raises(RuntimeError):
        await CatalogBrowser(FakeCatalog(fail=True)).discover("tv")


async def test_genres():
    browser = CatalogBrowser(FakeCatalog(fail_kinds=("tv",)))
    result = await browser.genres()
    assert result == {"movieGenres": [{"id": 18, "name": "драма (movie)"}], "tvGenres": []}


async def test_details_add_image_urls(browser):
    data = await browser.details("movie", "550")

    assert data["title"] == "Бойцовский клуб"
    assert data["poster_url"] == "https://image.tmdb.org/t/p/w500/poster550.jpg"
    assert data["poster_url_original"] == "https://image.tmdb.org/t/p/original/poster550.jpg"
    assert "backdrop_url" not in data


@pytest.mark.parametrize("kind,raw_id,code", [
    ("book", "550", "INVALID_TYPE"),
    ("movie", "abc", "INVALID_ID"),
    ("movie", "0", "INVALID_ID"),
    ("tv", "-4", "INVALID_ID"),
])
async def test_details_validation(browser, kind, raw_id, code):
    with pytest.raises(ValidationError) as exc:
        await browser.details(kind, raw_id)
    assert exc.value.code == code


async def test_images(browser):
    result = await browser.images("tv", 1399)

    assert (result["id"], result["type"]) == (1399, "tv")
    assert result["posters"] == [{
        "file_path": "/alt.jpg",
        "url_w500": "https://image.tmdb.org/t/p/w500/alt.jpg",
        "url_original": "https://image.tmdb.org/t/p/original/alt.jpg",
    }]
    assert result["backdrops"] == [] and result["logos"] == []


async def test_unconfigured_catalog():
    with pytest.raises(UpstreamUnavailable) as exc:
        await CatalogBrowser(None).popular()
    assert exc.value.code == "CATALOG_UNAVAILABLE"


def test_image_url():
    assert image_url(None) is None
    assert image_url("/x.jpg", "w1280") == "https://image.tmdb.org/t/p/w1280/x.jpg"
