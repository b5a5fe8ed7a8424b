import logging
import re
import threading
from datetime import datetime, timezone

from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from biaswatch.errors import StorageError, ValidationError
from biaswatch.models.article import Article, User
from biaswatch.services.storage import ArticleStorage, page_bounds

logger = logging.getLogger(__name__)

NEWEST_FIRST = [("analyzed_at", DESCENDING), ("id", DESCENDING)]


def source_filter(source):
    """Case-insensitive exact match on the source field."""
    return {"source": {"$regex": f"^{re.escape(source)}$", "$options": "i"}}


def search_filter(term):
    pattern = {"$regex": re.escape(term), "$options": "i"}
    return {"$or": [{"title": pattern}, {"source": pattern}]}


def _strip_id(document):
    document = dict(document)
    document.pop("_id", None)
    return document


class MongoArticleStorage(ArticleStorage):
    """Same contract as MemStorage over the articles, users and counters collections."""

    name = "mongodb"

    def __init__(self, db_client):
        self.db = db_client
        self.articles_collection = self.db.get_collection('articles')
        self.users_collection = self.db.get_collection('users')
        self.counters_collection = self.db.get_collection('counters')
        self._last_analyzed_at = None
        self._clock_lock = threading.Lock()

    def ensure_indexes(self):
        try:
            self.articles_collection.create_index(NEWEST_FIRST)
            self.users_collection.create_index("username", unique=True)
        except PyMongoError as e:
            logger.error(f"Failed to create indexes: {e}")

    def _next_id(self, sequence):
        counter = self.counters_collection.find_one_and_update(
            {"_id": sequence},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return counter["seq"]

    def get_user(self, user_id):
        try:
            document = self.users_collection.find_one({"_id": user_id})
        except PyMongoError as e:
            logger.error(f"MongoDB error fetching user {user_id}: {e}")
            raise StorageError(f"Database error fetching user: {e}") from e
        return User.model_validate(_strip_id(document)) if document else None

    def get_user_by_username(self, username):
        try:
            document = self.users_collection.find_one({"username": username})
        except PyMongoError as e:
            logger.error(f"MongoDB error fetching user {username}: {e}")
            raise StorageError(f"Database error fetching user: {e}") from e
        return User.model_validate(_strip_id(document)) if document else None

    def create_user(self, user):
        try:
            user_id = self._next_id("users")
            created = User(id=user_id, **user.model_dump())
            self.users_collection.insert_one({"_id": user_id, **created.model_dump()})
        except DuplicateKeyError as e:
            raise ValidationError(f"Username already taken: {user.username}") from e
        except PyMongoError as e:
            logger.error(f"MongoDB error creating user: {e}")
            raise StorageError(f"Database error creating user: {e}") from e
        return created

    def _stamp(self):
        # Never stamp earlier than this process's previous insert, even if the wall clock steps back.
        with self._clock_lock:
            analyzed_at = datetime.now(timezone.utc)
            if self._last_analyzed_at is not None and analyzed_at < self._last_analyzed_at:
                analyzed_at = self._last_analyzed_at
            self._last_analyzed_at = analyzed_at
            return analyzed_at

    def create_article(self, article):
        try:
            article_id = self._next_id("articles")
            created = Article(id=article_id, analyzed_at=self._stamp(), **article.model_dump())
            document = created.model_dump(exclude={"bias_label"})
            self.articles_collection.insert_one({"_id": article_id, **document})
        except PyMongoError as e:
            logger.error(f"MongoDB error storing article: {e}")
            raise StorageError(f"Database error storing article: {e}") from e
        logger.info(f"Stored article {article_id} in MongoDB: {created.title[:50]}")
        return created

    def _find(self, query, skip=0, limit=0):
        try:
            cursor = self.articles_collection.find(query).sort(NEWEST_FIRST)
            if skip:
                cursor = cursor.skip(skip)
            if limit:
                cursor = cursor.limit(limit)
            return [Article.model_validate(_strip_id(document)) for document in cursor]
        except PyMongoError as e:
            logger.error(f"MongoDB error fetching articles: {e}")
            raise StorageError(f"Database error fetching articles: {e}") from e

    def get_article(self, article_id):
        try:
            document = self.articles_collection.find_one({"_id": article_id})
        except PyMongoError as e:
            logger.error(f"MongoDB error fetching article by ID {article_id}: {e}")
            raise StorageError(f"Database error fetching article: {e}") from e
        if not document:
            logger.warning(f"Article with ID {article_id} not found.")
            return None
        return Article.model_validate(_strip_id(document))

    def get_latest_article(self):
        articles = self._find({}, limit=1)
        return articles[0] if articles else None

    def get_recent_articles(self, limit):
        if limit < 1:
            return []
        return self._find({}, limit=limit)

    def get_article_history(self, page, limit, source=None):
        bounds = page_bounds(page, limit)
        if bounds is None:
            return []
        start, _ = bounds
        query = source_filter(source) if source else {}
        return self._find(query, skip=start, limit=limit)

    def get_article_count(self, source=None, search_term=None):
        clauses = []
        if source:
            clauses.append(source_filter(source))
        if search_term:
            clauses.append(search_filter(search_term))
        query = {"$and": clauses} if clauses else {}
        try:
            return self.articles_collection.count_documents(query)
        except PyMongoError as e:
            logger.error(f"MongoDB error counting articles: {e}")
            raise StorageError(f"Database error counting articles: {e}") from e
