import json

import httpx
import pytest

from threatscope.core.errors import CountryLookupError
from threatscope.services.countries import CountryDirectory
from threatscope.tests.utils.sse import FakeUpstream

COUNTRIES = {
    "data": {
        "countries": [
            {
                "code": "FR",
                "name": "France",
                "capital": "Paris",
                "continent": {"name": "Europe"},
                "emoji": "\U0001f1eb\U0001f1f7",
                "currency": "EUR",
                "languages": [{"name": "French"}],
            },
            {
                "code": "DE",
                "name": "Germany",
                "capital": "Berlin",
                "continent": {"name": "Europe"},
                "emoji": "\U0001f1e9\U0001f1ea",
                "currency": "EUR",
                "languages": [{"name": "German"}],
            },
        ]
    }
}


def _directory(api: FakeUpstream) -> CountryDirectory:
    return CountryDirectory(
        httpx.AsyncClient(transport=api.transport), "https://countries.test/graphql"
    )


@pytest.mark.asyncio
async def test_list_countries_with_continent_filter():
    api = FakeUpstream(lambda request: httpx.Response(200, json=COUNTRIES))

    countries = await _directory(api).list_countries("EU")

    assert [c.code for c in countries] == ["FR", "DE"]
    assert countries[0].continent.name == "Europe"
    assert countries[1].languages[0].name == "German"
    payload = json.loads(api.calls[0].content)
    assert payload["variables"] == {"filter": {"continent": {"eq": "EU"}}}


@pytest.mark.asyncio
async def test_results_are_cached_per_filter():
    api = FakeUpstream(lambda request: httpx.Response(200, json=COUNTRIES))
    directory = _directory(api)

    await directory.list_countries("EU")
    await directory.list_countries("EU")
    await directory.list_countries()

    assert len(api.calls) == 2


@pytest.mark.asyncio
async def test_get_country_by_code():
    api = FakeUpstream(lambda request: httpx.Response(200, json=COUNTRIES))
    directory = _directory(api)

    assert (await directory.get_country("de")).name == "Germany"
    assert await directory.get_country("XX") is None


@pytest.mark.asyncio
async def test_http_failure_raises_lookup_error():
    api = FakeUpstream(lambda request: httpx.Response(502))

    with pytest.raises(CountryLookupError):
        await _directory(api).list_countries()


@pytest.mark.asyncio
async def test_graphql_errors_raise_lookup_error():
    api = FakeUpstream(
        lambda request: httpx.Response(200, json={"errors": [{"message": "bad filter"}]})
    )

    with pytest.raises(CountryLookupError, match="bad filter"):
        await _directory(api).list_countries("ZZ")
