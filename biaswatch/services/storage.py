import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional

from biaswatch.errors import ValidationError
from biaswatch.models.article import Article, ArticleCreate, User, UserCreate

logger = logging.getLogger(__name__)


def _newest_first(article: Article):
    # Ties on analyzed_at go to the later insert.
    return (article.analyzed_at, article.id)


def _same_source(article: Article, source: str) -> bool:
    return bool(article.source) and article.source.lower() == source.lower()


def _matches_search(article: Article, term: str) -> bool:
    term = term.lower()
    return term in article.title.lower() or (bool(article.source) and term in article.source.lower())


def page_bounds(page: int, limit: int):
    """Slice bounds for a 1-indexed page, or None when the page cannot exist."""
    if page < 1 or limit < 1:
        return None
    start = (page - 1) * limit
    return start, start + limit


class ArticleStorage(ABC):
    """Contract every article store honours, in memory or backed by a database."""

    name = "abstract"

    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abstractmethod
    def create_user(self, user: UserCreate) -> User: ...

    @abstractmethod
    def create_article(self, article: ArticleCreate) -> Article: ...

    @abstractmethod
    def get_article(self, article_id: int) -> Optional[Article]: ...

    @abstractmethod
    def get_latest_article(self) -> Optional[Article]: ...

    @abstractmethod
    def get_recent_articles(self, limit: int) -> List[Article]: ...

    @abstractmethod
    def get_article_history(self, page: int, limit: int, source: Optional[str] = None) -> List[Article]: ...

    @abstractmethod
    def get_article_count(self, source: Optional[str] = None, search_term: Optional[str] = None) -> int: ...


class MemStorage(ArticleStorage):
    """
    Process-local store. Records are only ever appended, so the single lock
    around id assignment and insert is all the coordination needed.
    """

    name = "memory"

    def __init__(self):
        self.users = {}
        self.articles = {}
        self.user_id_counter = 1
        self.article_id_counter = 1
        self._last_analyzed_at = None
        self._lock = threading.Lock()

    def _snapshot(self, table):
        with self._lock:
            return list(table.values())

    def get_user(self, user_id):
        return self.users.get(user_id)

    def get_user_by_username(self, username):
        return next((user for user in self._snapshot(self.users) if user.username == username), None)

    def create_user(self, user):
        with self._lock:
            if any(existing.username == user.username for existing in self.users.values()):
                raise ValidationError(f"Username already taken: {user.username}")
            user_id = self.user_id_counter
            self.user_id_counter += 1
            created = User(id=user_id, **user.model_dump())
            self.users[user_id] = created
        return created

    def create_article(self, article):
        with self._lock:
            article_id = self.article_id_counter
            self.article_id_counter += 1
            # Never stamp earlier than the previous insert, even if the wall clock steps back.
            analyzed_at = datetime.now(timezone.utc)
            if self._last_analyzed_at is not None and analyzed_at < self._last_analyzed_at:
                analyzed_at = self._last_analyzed_at
            self._last_analyzed_at = analyzed_at
            created = Article(id=article_id, analyzed_at=analyzed_at, **article.model_dump())
            self.articles[article_id] = created
        logger.info(f"Stored article {article_id}: {created.title[:50]}")
        return created

    def get_article(self, article_id):
        return self.articles.get(article_id)

    def get_latest_article(self):
        articles = self._snapshot(self.articles)
        if not articles:
            return None
        return max(articles, key=_newest_first)

    def get_recent_articles(self, limit):
        if limit < 1:
            return []
        return sorted(self._snapshot(self.articles), key=_newest_first, reverse=True)[:limit]

    def get_article_history(self, page, limit, source=None):
        bounds = page_bounds(page, limit)
        if bounds is None:
            return []
        articles = self._snapshot(self.articles)
        if source:
            articles = [article for article in articles if _same_source(article, source)]
        articles.sort(key=_newest_first, reverse=True)
        start, end = bounds
        return articles[start:end]

    def get_article_count(self, source=None, search_term=None):
        articles = self._snapshot(self.articles)
        if source:
            articles = [article for article in articles if _same_source(article, source)]
        if search_term:
            articles = [article for article in articles if _matches_search(article, search_term)]
        return len(articles)
