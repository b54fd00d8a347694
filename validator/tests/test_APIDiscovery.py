"""Unit tests for APIDiscovery."""

import asyncio

import httpx

from validator.src.APIDiscovery import (
    APIS_GURU_LIST_URL,
    MAX_DISCOVERED,
    APIDiscovery,
    extract_search_terms,
    known_sources,
)

DIRECTORY = {
    "coinapi.io": {
        "versions": {
            "1.0": {
                "info": {
                    "title": "CoinAPI",
                    "description": "Crypto price market data",
                    "contact": {"url": "https://www.coinapi.io"},
                }
            }
        }
    },
    "petstore.io": {
        "versions": {"1.0": {"info": {"title": "Pets", "description": "Dogs and cats"}}}
    },
    "empty.io": {"versions": {}},
}


def discover(handler, question: str, category: str, **kwargs):
    async def _run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            discovery = APIDiscovery(client=client, **kwargs)
            return await discovery.discover_apis(question, category)

    return asyncio.run(_run())


def directory_handler(request: httpx.Request) -> httpx.Response:
    assert str(request.url) == APIS_GURU_LIST_URL
    return httpx.Response(200, json=DIRECTORY)


class TestSearchTerms:
    """Test search term extraction."""

    def test_category_first(self) -> None:
        assert extract_search_terms("Anything", "GENERIC") == ["generic"]

    def test_price_question(self) -> None:
        assert extract_search_terms("BTC price above $70k?", "crypto") == [
            "crypto",
            "price",
            "financial",
        ]

    def test_weather_question(self) -> None:
        terms = extract_search_terms("Temperature in Paris", "weather")
        assert terms == ["weather", "climate"]


class TestDiscoverAPIs:
    """Test the merged discovery."""

    def test_directory_and_known_sources(self) -> None:
        apis = discover(directory_handler, "BTC price?", "crypto")
        names = [api.name for api in apis]

        assert names[0] == "coinapi.io"
        assert "petstore.io" not in names
        assert names[1:] == [api.name for api in known_sources("crypto")]
        assert apis[0].url == "https://www.coinapi.io"

    def test_rapidapi_table_first_and_deduplicated(self) -> None:
        apis = discover(
            directory_handler, "BTC price?", "crypto", rapidapi_key="key", apis_guru_enabled=False
        )
        names = [api.name for api in apis]

        assert names.count("CoinGecko API") == 1
        assert apis[0].auth_header == "X-CG-Pro-API-Key"

    def test_directory_error_keeps_known_sources(self) -> None:
        apis = discover(lambda r: httpx.Response(500), "Who wins the match?", "sports")
        assert [api.name for api in apis] == ["TheSportsDB"]

    def test_unknown_category_without_directory(self) -> None:
        apis = discover(directory_handler, "Box office", "generic", apis_guru_enabled=False)
        assert apis == []

    def test_capped(self) -> None:
        directory = {
            f"crypto{i}.io": {"versions": {"1": {"info": {"title": f"Crypto {i}"}}}}
            for i in range(20)
        }
        apis = discover(lambda r: httpx.Response(200, json=directory), "price", "crypto")
        assert len(apis) <= MAX_DISCOVERED
