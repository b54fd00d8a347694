"""APIDiscovery: Finds data APIs relevant to a free-text market question.

Discovery merges three sources, in order:
    1. A RapidAPI table of known endpoints (only with a RapidAPI key)
    2. The public APIs.guru directory, searched by term (if enabled)
    3. A static table of reliable sources keyed by category

Results are de-duplicated by name and capped at MAX_DISCOVERED.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from .http_client import get_shared_client

logger = logging.getLogger(__name__)

APIS_GURU_LIST_URL = "https://api.apis.guru/v2/list.json"
MAX_DISCOVERED = 10
MAX_DIRECTORY_MATCHES = 5


@dataclass(frozen=True)
class DiscoveredAPI:
    """A candidate data API.

    :ivar name: API name.
    :ivar url: Base URL (may be empty for directory entries without one).
    :ivar description: Short description.
    :ivar category: Category or search term the API matched.
    :ivar auth_header: Header carrying the API key, if the API needs one.
    """

    name: str
    url: str
    description: str
    category: str
    auth_header: str | None = None


RAPIDAPI_KNOWN: dict[str, DiscoveredAPI] = {
    "crypto": DiscoveredAPI(
        name="CoinGecko API",
        url="https://api.coingecko.com/api/v3",
        description="Cryptocurrency prices and market data",
        category="crypto",
        auth_header="X-CG-Pro-API-Key",
    ),
    "sports": DiscoveredAPI(
        name="API-Football",
        url="https://api-football.com",
        description="Football scores and statistics",
        category="sports",
        auth_header="X-RapidAPI-Key",
    ),
}

KNOWN_SOURCES: dict[str, list[DiscoveredAPI]] = {
    "crypto": [
        DiscoveredAPI(
            name="Binance API",
            url="https://api.binance.com/api/v3",
            description="Cryptocurrency exchange prices",
            category="crypto",
        ),
        DiscoveredAPI(
            name="CoinGecko API",
            url="https://api.coingecko.com/api/v3",
            description="Cryptocurrency market data",
            category="crypto",
        ),
        DiscoveredAPI(
            name="CoinMarketCap API",
            url="https://pro-api.coinmarketcap.com/v1",
            description="Cryptocurrency prices and market cap",
            category="crypto",
        ),
    ],
    "sports": [
        DiscoveredAPI(
            name="TheSportsDB",
            url="https://www.thesportsdb.com/api/v1/json",
            description="Sports scores and statistics",
            category="sports",
        ),
    ],
    "election": [
        DiscoveredAPI(
            name="Google Civic Information API",
            url="https://www.googleapis.com/civicinfo/v2",
            description="Election and voting information",
            category="election",
        ),
    ],
    "weather": [
        DiscoveredAPI(
            name="OpenWeatherMap API",
            url="https://api.openweathermap.org/data/2.5",
            description="Weather data and forecasts",
            category="weather",
        ),
    ],
}

_TERM_TRIGGERS: tuple[tuple[tuple[str, ...], tuple[str, ...]], ...] = (
    (("price", "$"), ("price", "crypto", "financial")),
    (("sport", "game", "match"), ("sports", "scores", "events")),
    (("election", "vote"), ("election", "politics", "voting")),
    (("weather", "temperature"), ("weather", "climate")),
)


def extract_search_terms(question: str, category: str) -> list[str]:
    """Derive directory search terms from a question and its category.

    :param question: Free-text question.
    :param category: Feed category name.
    :returns: Ordered, de-duplicated list of terms, category first.
    """
    terms = [category.lower()]
    lowered = question.lower()
    for triggers, added in _TERM_TRIGGERS:
        if any(trigger in lowered for trigger in triggers):
            terms.extend(added)
    return list(dict.fromkeys(terms))


def known_sources(category: str) -> list[DiscoveredAPI]:
    """Return the static reliable sources for a category."""
    return list(KNOWN_SOURCES.get(category.lower(), []))


class APIDiscovery:
    """Discovers candidate APIs for prediction market questions.

    :ivar rapidapi_key: Optional RapidAPI key; enables the RapidAPI table.
    :ivar apis_guru_enabled: Whether the APIs.guru directory is searched.
    :ivar timeout: Directory request timeout in seconds.
    """

    def __init__(
        self,
        rapidapi_key: str | None = None,
        apis_guru_enabled: bool = True,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.rapidapi_key = rapidapi_key
        self.apis_guru_enabled = apis_guru_enabled
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client if self._client is not None else get_shared_client()

    async def discover_apis(self, question: str, category: str) -> list[DiscoveredAPI]:
        """Discover APIs for a question.

        :param question: Free-text question.
        :param category: Feed category name (e.g., "crypto").
        :returns: Up to MAX_DISCOVERED APIs; the static table on error.
        """
        try:
            terms = extract_search_terms(question, category)
            discovered: list[DiscoveredAPI] = []

            if self.rapidapi_key:
                discovered.extend(self._search_rapidapi(terms))
            if self.apis_guru_enabled:
                discovered.extend(await self._search_apis_guru(terms))
            discovered.extend(known_sources(category))

            unique: dict[str, DiscoveredAPI] = {}
            for api in discovered:
                unique.setdefault(api.name, api)

            logger.info(f"Discovered {len(unique)} APIs for question: {question[:50]}")
            return list(unique.values())[:MAX_DISCOVERED]
        except Exception as e:
            logger.error(f"API discovery error: {e}")
            return known_sources(category)

    def _search_rapidapi(self, terms: list[str]) -> list[DiscoveredAPI]:
        return [RAPIDAPI_KNOWN[term] for term in terms if term in RAPIDAPI_KNOWN]

    async def _search_apis_guru(self, terms: list[str]) -> list[DiscoveredAPI]:
        """Search the APIs.guru public directory.

        :param terms: Search terms.
        :returns: Up to MAX_DIRECTORY_MATCHES matches; empty on any error.
        """
        try:
            response = await self.client.get(APIS_GURU_LIST_URL, timeout=self.timeout)
            response.raise_for_status()
            directory = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"APIs.guru search error: {e}")
            return []

        matches: list[DiscoveredAPI] = []
        for api_name, api_data in directory.items():
            versions = (api_data or {}).get("versions") or {}
            if not versions:
                continue
            info = (next(iter(versions.values())) or {}).get("info") or {}
            haystack = f"{api_name} {info.get('title', '')} {info.get('description', '')}".lower()

            term = next((t for t in terms if t in haystack), None)
            if term is None:
                continue

            url = (info.get("contact") or {}).get("url") or ""
            matches.append(
                DiscoveredAPI(
                    name=api_name,
                    url=url,
                    description=info.get("description", "")[:200],
                    category=term,
                )
            )
            if len(matches) >= MAX_DIRECTORY_MATCHES:
                break
        return matches
