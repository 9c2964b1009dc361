"""Content services backing gateway commands (markdown, tweets, search, wiki, weather)."""

from __future__ import annotations

import html
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from smsgw.config import ContentSettings
from smsgw.logging import logger
from smsgw.services.exceptions import FetchFailed

SEARCH_LINK_RE = re.compile(r'<a rel="nofollow" href="([^"]+)"[^>]*>([^<]+)</a>')
NO_RESULTS = "No results found"


class _BaseContentService:
    def __init__(
        self,
        http_client: httpx.AsyncClient,
        settings: ContentSettings | None = None,
    ) -> None:
        self._client = http_client
        self._settings = settings or ContentSettings()

    async def _get(self, name: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.get(
                url,
                timeout=self._settings.request_timeout_seconds,
                **kwargs,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            detail = exc.response.text[:500] if exc.response is not None else str(exc)
            status_code = exc.response.status_code if exc.response is not None else "unknown"
            logger.warning("fetch_failed", source=name, status_code=status_code)
            raise FetchFailed(f"{name} request failed ({status_code}): {detail}") from exc
        except httpx.RequestError as exc:
            logger.warning("fetch_failed", source=name, error=str(exc))
            raise FetchFailed(f"{name} request failed: {exc}") from exc
        return response

    @staticmethod
    def _require(value: str, message: str) -> str:
        value = (value or "").strip()
        if not value:
            raise FetchFailed(message)
        return value


class MarkdownService(_BaseContentService):
    """Render a web page as markdown through urltomarkdown."""

    async def fetch(self, url: str) -> str:
        url = self._require(url, "Please provide a valid URL.")
        response = await self._get(
            "markdown",
            str(self._settings.markdown_url),
            params={"clean": "true", "url": url},
        )
        return response.text


class TweetService(_BaseContentService):
    """Read a user's recent posts from a Nitter RSS feed."""

    async def fetch(self, username: str, count: int) -> str:
        username = self._require(username, "Please provide a username.").lstrip("@")
        base = str(self._settings.nitter_base_url).rstrip("/")
        response = await self._get("tweets", f"{base}/{quote(username)}/rss")
        return parse_tweets(response.text, count)


def parse_tweets(rss: str, count: int) -> str:
    try:
        root = ET.fromstring(rss)
    except ET.ParseError as exc:
        raise FetchFailed(f"Error parsing RSS: {exc}") from exc

    tweets: list[str] = []
    for item in root.iter("item"):
        if len(tweets) >= count:
            break
        title = html.unescape(item.findtext("title") or "")
        if title.startswith("RT by @") or not title.strip():
            continue
        tweets.append(f"- {title}")

    if not tweets:
        raise FetchFailed("No tweets found.")
    return "\n".join(tweets)


class SearchService(_BaseContentService):
    """DuckDuckGo lite search rendered as a compact list."""

    async def search(self, query: str) -> str:
        query = self._require(query, "Search query must not be empty.")
        response = await self._get(
            "duckduckgo",
            str(self._settings.duckduckgo_url),
            params={"q": query},
        )
        return parse_search_results(response.text, self._settings.max_search_results) or NO_RESULTS


def parse_search_results(page: str, limit: int) -> str:
    results: list[str] = []
    for match in SEARCH_LINK_RE.finditer(page):
        if len(results) >= limit:
            break
        url, title = match.group(1), html.unescape(match.group(2))
        if "duckduckgo.com" in url:
            continue
        results.append(f"- {title}\n  {url}")
    return "\n\n".join(results)


class WikipediaService(_BaseContentService):
    """Plain-text introduction of a Wikipedia article."""

    async def summary(self, query: str, lang: str = "en") -> str:
        query = self._require(query, "Wikipedia query must not be empty.")
        lang = (lang or "en").strip().lower()
        if not lang.isalpha():
            raise FetchFailed(f"Invalid language code {lang!r}.")

        response = await self._get(
            "wikipedia",
            self._settings.wikipedia_host_template.format(lang=lang),
            params={
                "format": "json",
                "action": "query",
                "prop": "extracts",
                "exintro": "1",
                "explaintext": "1",
                "redirects": "1",
                "titles": query,
            },
        )
        try:
            pages = response.json().get("query", {}).get("pages", {})
        except ValueError as exc:
            raise FetchFailed("Wikipedia response is not valid JSON.") from exc

        for page in pages.values():
            extract = (page.get("extract") or "").strip()
            if extract:
                return extract
        raise FetchFailed(f"No Wikipedia article found for {query!r}.")


class WeatherService(_BaseContentService):
    """Compact forecast from wttr.in."""

    async def forecast(self, location: str) -> str:
        location = self._require(location, "Please provide a location.")
        base = str(self._settings.weather_base_url).rstrip("/")
        response = await self._get(
            "weather",
            f"{base}/{quote(location)}",
            params={"format": self._settings.weather_format},
        )
        return self._require(response.text, "Weather service returned no forecast.")


@dataclass(slots=True)
class ContentFetchers:
    markdown: MarkdownService
    tweets: TweetService
    search: SearchService
    wikipedia: WikipediaService
    weather: WeatherService

    @classmethod
    def build(
        cls, http_client: httpx.AsyncClient, settings: ContentSettings | None = None
    ) -> "ContentFetchers":
        return cls(
            markdown=MarkdownService(http_client, settings),
            tweets=TweetService(http_client, settings),
            search=SearchService(http_client, settings),
            wikipedia=WikipediaService(http_client, settings),
            weather=WeatherService(http_client, settings),
        )


__all__ = [
    "ContentFetchers",
    "MarkdownService",
    "NO_RESULTS",
    "SearchService",
    "TweetService",
    "WeatherService",
    "WikipediaService",
    "parse_search_results",
    "parse_tweets",
]
