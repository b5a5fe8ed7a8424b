import html
import logging
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

import requests

from biaswatch.errors import ExtractionError, FetchError

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.5',
}

UNTITLED = "Untitled Article"
MIN_ARTICLE_CHARS = 1000
MAX_CONTENT_CHARS = 8000

KNOWN_SOURCES = {
    'nytimes.com': 'New York Times',
    'wsj.com': 'Wall Street Journal',
    'foxnews.com': 'Fox News',
    'cnn.com': 'CNN',
    'npr.org': 'NPR',
    'bbc.com': 'BBC',
    'washingtonpost.com': 'Washington Post',
    'theguardian.com': 'The Guardian',
}

_CONTAINER_HINT = r'(?:article|post|content|entry|main)'
ARTICLE_PATTERNS = [
    re.compile(r'<article\b[^>]*>(.*?)</article>', re.I | re.S),
    re.compile(r'<div\b[^>]*\bclass\s*=\s*["\'][^"\']*' + _CONTAINER_HINT + r'[^"\']*["\'][^>]*>(.*?)</div>', re.I | re.S),
    re.compile(r'<div\b[^>]*\bid\s*=\s*["\'][^"\']*' + _CONTAINER_HINT + r'[^"\']*["\'][^>]*>(.*?)</div>', re.I | re.S),
    re.compile(r'<section\b[^>]*\bclass\s*=\s*["\'][^"\']*' + _CONTAINER_HINT + r'[^"\']*["\'][^>]*>(.*?)</section>', re.I | re.S),
]

_TITLE_RE = re.compile(r'<title\b[^>]*>(.*?)</title>', re.I | re.S)
_BOILERPLATE_RE = re.compile(
    r'<(style|script|header|footer|nav|aside|form|iframe)\b[^>]*>.*?</\1\s*>', re.I | re.S
)
_BLOCK_END_RE = re.compile(r'</(?:p|h[1-6])\s*>', re.I)
_BR_RE = re.compile(r'<br\s*/?>', re.I)
_TAG_RE = re.compile(r'<[^>]+>')
_HSPACE_RE = re.compile(r'[^\S\n]+')
_NEWLINES_RE = re.compile(r'\s*\n\s*')


@dataclass(frozen=True)
class ExtractedArticle:
    title: str
    source: str
    content: str


def source_name(url: str) -> str:
    """Display name for the outlet behind a URL."""
    host = (urlparse(url).hostname or "").lower()
    if host.startswith('www.'):
        host = host[4:]
    for domain, name in KNOWN_SOURCES.items():
        if host == domain or host.endswith('.' + domain):
            return name
    return host


def clean_html(fragment: str) -> str:
    """Flatten an HTML fragment into readable text."""
    text = _BOILERPLATE_RE.sub('', fragment)
    text = _BLOCK_END_RE.sub('\n', text)
    text = _BR_RE.sub('\n', text)
    text = _TAG_RE.sub(' ', text)
    text = html.unescape(text)
    text = _HSPACE_RE.sub(' ', text)
    text = _NEWLINES_RE.sub('\n', text)
    return text.strip()


def extract_title(page: str) -> str:
    match = _TITLE_RE.search(page)
    if not match:
        return UNTITLED
    title = _HSPACE_RE.sub(' ', html.unescape(_TAG_RE.sub('', match.group(1)))).strip()
    return title or UNTITLED


def extract_main_content(page: str) -> str:
    """
    Try the likely article containers in order and take the first one with
    substantial text; otherwise fall back to the whole document.
    """
    for pattern in ARTICLE_PATTERNS:
        for match in pattern.finditer(page):
            text = clean_html(match.group(1))
            if len(text) > MIN_ARTICLE_CHARS:
                return text[:MAX_CONTENT_CHARS]
    return clean_html(page)[:MAX_CONTENT_CHARS]


def extract_from_html(url: str, page: str) -> ExtractedArticle:
    return ExtractedArticle(
        title=extract_title(page),
        source=source_name(url),
        content=extract_main_content(page),
    )


def fetch_html(url: str, timeout: Optional[float] = 20.0, session: Optional[requests.Session] = None) -> str:
    client = session or requests
    try:
        response = client.get(url, headers=DEFAULT_HEADERS, timeout=timeout)
        response.raise_for_status()
    except requests.exceptions.HTTPError as e:
        logger.error(f"HTTP error fetching {url}: {e}")
        raise FetchError(f"Failed to fetch URL: {e.response.status_code}") from e
    except requests.RequestException as e:
        logger.error(f"Error fetching {url}: {e}")
        raise FetchError(f"Failed to fetch URL: {e}") from e
    return response.text


def extract(url: str, timeout: Optional[float] = 20.0, session: Optional[requests.Session] = None) -> ExtractedArticle:
    """Fetch a page and isolate its title, outlet name and article text."""
    page = fetch_html(url, timeout=timeout, session=session)
    article = extract_from_html(url, page)
    if not article.content:
        raise ExtractionError(f"No readable text found at {url}")
    logger.info(f"Extracted {len(article.content)} chars from {article.source}: {article.title[:50]}")
    return article
