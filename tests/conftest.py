"""
Shared fixtures.

- StubCompletion: queued JSON answers in place of the Gemini client
- StubNewsSearch: canned per-source results in place of NewsAPI
- app / client: Flask test client wired to an in-memory store
"""

import json

import pytest

from biaswatch import create_app
from biaswatch.errors import UpstreamError
from biaswatch.services.storage import MemStorage
from config import TestingConfig


class StubCompletion:
    """Returns queued responses in order and records every prompt."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.prompts = []

    def queue(self, response):
        self.responses.append(response)

    def complete_json(self, prompt, max_output_tokens=2000):
        self.prompts.append(prompt)
        if not self.responses:
            raise UpstreamError("No stubbed completion left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, str):
            return response
        return json.dumps(response)


class StubNewsSearch:
    def __init__(self, articles_by_source=None):
        self.articles_by_source = articles_by_source or {}
        self.calls = []

    def fetch_articles_from_sources(self, topic, sources):
        self.calls.append((topic, list(sources)))
        return {source: list(self.articles_by_source.get(source, [])) for source in sources}


def news_article(source, title, description="A description.", content="Some content."):
    return {
        "source": {"id": None, "name": source},
        "title": title,
        "description": description,
        "content": content,
        "url": f"https://example.com/{source.lower().replace(' ', '-')}",
        "publishedAt": "2025-06-11T10:00:00Z",
    }


def full_analysis(**overrides):
    payload = {
        "title": "Budget talks stall in Senate",
        "biasScore": 62,
        "politicalLeaning": "Liberal",
        "emotionalLanguage": "High",
        "factualReporting": "Moderate",
        "biasAnalysis": "The article leans on loaded adjectives.",
        "neutralText": "Senators did not reach agreement on the budget.",
        "biasedPhrases": [{"text": "reckless cuts", "explanation": "Loaded framing"}],
        "topics": {"main": "Budget", "related": ["Politics", "Economy"]},
        "multidimensionalAnalysis": {
            "bias": 60, "emotional": 70, "factual": 55, "political": 80, "neutralLanguage": 35,
        },
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def completion():
    return StubCompletion()


@pytest.fixture
def news_search():
    return StubNewsSearch()


@pytest.fixture
def storage():
    return MemStorage()


@pytest.fixture
def app(storage, completion, news_search):
    return create_app(TestingConfig, storage=storage, completion=completion, news_search=news_search)


@pytest.fixture
def client(app):
    return app.test_client()
