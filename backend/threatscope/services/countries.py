from typing import List, Optional

import httpx
import structlog
from cachetools import TTLCache

from threatscope.core.errors import CountryLookupError
from threatscope.schemas import Country

logger = structlog.get_logger()

COUNTRY_QUERY = """
  query GetCountries($filter: CountryFilterInput) {
    countries(filter: $filter) {
      code
      name
      capital
      continent {
        name
      }
      emoji
      currency
      languages {
        name
      }
    }
  }
"""


class CountryDirectory:
    """Country lookup against the public countries GraphQL API.

    Results are cached per continent filter for ``ttl_seconds``.
    """

    def __init__(self, http_client: httpx.AsyncClient, url: str, ttl_seconds: int = 300):
        self._http = http_client
        self._url = url
        self._cache: TTLCache = TTLCache(maxsize=64, ttl=ttl_seconds)

    async def list_countries(self, continent: Optional[str] = None) -> List[Country]:
        key = continent or "*"
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        variables = {"filter": {"continent": {"eq": continent}}} if continent else {}
        try:
            resp = await self._http.post(
                self._url, json={"query": COUNTRY_QUERY, "variables": variables}
            )
        except httpx.HTTPError as e:
            logger.warning("country_lookup_failed", error=str(e))
            raise CountryLookupError(f"Failed to fetch countries: {e}") from e

        if not resp.is_success:
            logger.warning("country_lookup_failed", status=resp.status_code)
            raise CountryLookupError(f"Failed to fetch countries: HTTP {resp.status_code}")

        try:
            payload = resp.json()
        except ValueError as e:
            raise CountryLookupError("Failed to fetch countries: invalid JSON") from e
        if payload.get("errors"):
            raise CountryLookupError(f"Failed to fetch countries: {payload['errors'][0].get('message')}")

        rows = (payload.get("data") or {}).get("countries") or []
        countries = [Country.model_validate(row) for row in rows]
        self._cache[key] = countries
        return countries

    async def get_country(self, code: str) -> Optional[Country]:
        code = code.upper()
        for country in await self.list_countries():
            if country.code == code:
                return country
        return None
