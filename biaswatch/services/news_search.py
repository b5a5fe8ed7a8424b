import logging
import re
from concurrent.futures import ThreadPoolExecutor, as_completed

import requests
from newsapi import NewsApiClient
from newsapi.newsapi_exception import NewsAPIException

from biaswatch.errors import ConfigError, UpstreamError

logger = logging.getLogger(__name__)

NEWS_SOURCES = {
    "New York Times": "the-new-york-times",
    "Wall Street Journal": "the-wall-street-journal",
    "Fox News": "fox-news",
    "CNN": "cnn",
    "BBC": "bbc-news",
    "Washington Post": "the-washington-post",
    "NPR": "npr",
    "Guardian": "the-guardian-uk",
}

# NewsAPI error codes returned with HTTP 400.
BAD_REQUEST_CODES = {"parameterInvalid", "parametersMissing", "sourcesTooMany", "sourceDoesNotExist"}

PAGE_SIZE = 5


def source_domain(source_id: str) -> str:
    """Guess an outlet's domain from its NewsAPI id (the-new-york-times -> new.york.times.com)."""
    slug = re.sub(r'^the-', '', source_id)
    return slug.replace('-', '.') + '.com'


def _error_code(exc: NewsAPIException):
    try:
        return exc.get_code()
    except (KeyError, TypeError):
        return None


class NewsSearchClient:
    def __init__(self, api_key, page_size=PAGE_SIZE, max_workers=8):
        self.api_key = api_key
        self.page_size = page_size
        self.max_workers = max_workers
        self.newsapi = NewsApiClient(api_key=api_key) if api_key else None

    def _require_key(self):
        if not self.api_key:
            raise ConfigError("NewsAPI key is not configured")

    def _everything(self, **params):
        response = self.newsapi.get_everything(sort_by="relevancy", page_size=self.page_size, **params)
        if response.get("status") != "ok":
            raise UpstreamError(f"NewsAPI returned non-ok status: {response.get('status')}")
        return response.get("articles") or []

    def fetch_for_source(self, topic, source):
        """
        Fetch up to page_size articles about topic from one outlet.

        Falls back to a domain-scoped query when NewsAPI rejects the source id,
        and to a broadened free-text query when the source query is empty.
        """
        self._require_key()
        source_id = NEWS_SOURCES.get(source, source)

        try:
            articles = self._everything(q=topic, sources=source_id)
        except NewsAPIException as e:
            code = _error_code(e)
            logger.warning(f"NewsAPI error with sources parameter for {source} ({code}): {e}")
            if code not in BAD_REQUEST_CODES:
                raise UpstreamError(f"Failed to fetch articles from {source}: {e}") from e
            domain = source_domain(source_id)
            try:
                return self._everything(q=topic, domains=domain)
            except (NewsAPIException, requests.RequestException) as fallback_error:
                raise UpstreamError(f"NewsAPI fallback error for {source}: {fallback_error}") from fallback_error
        except requests.RequestException as e:
            logger.error(f"Error fetching from NewsAPI for {source}: {e}")
            raise UpstreamError(f"Failed to fetch articles from {source}: {e}") from e

        if articles:
            logger.info(f"Fetched {len(articles)} articles from {source} for topic: {topic}")
            return articles

        return self._broadened_search(topic, source)

    def _broadened_search(self, topic, source):
        try:
            candidates = self._everything(q=f"{topic} {source.lower()}")
        except (NewsAPIException, UpstreamError, requests.RequestException) as e:
            logger.warning(f"Broadened NewsAPI search failed for {source}: {e}")
            return []
        if not candidates:
            return []

        wanted = source.lower()
        filtered = [
            article for article in candidates
            if wanted in ((article.get("source") or {}).get("name") or "").lower()
        ]
        return filtered if filtered else candidates[:2]

    def fetch_articles_from_sources(self, topic, sources):
        """
        Fetch every source concurrently. A source that fails contributes an
        empty list; the others are unaffected.
        """
        self._require_key()
        sources = list(dict.fromkeys(sources))
        results = {source: [] for source in sources}
        if not sources:
            return results

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(sources))) as executor:
            future_to_source = {
                executor.submit(self.fetch_for_source, topic, source): source
                for source in sources
            }
            for future in as_completed(future_to_source):
                source = future_to_source[future]
                try:
                    results[source] = future.result()
                except Exception as e:
                    logger.error(f"Error fetching from {source}: {e}")
                    results[source] = []

        total = sum(len(articles) for articles in results.values())
        logger.info(f"Fetched {total} articles across {len(sources)} sources for topic: {topic}")
        return results
