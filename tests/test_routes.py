from biaswatch import create_app
from biaswatch.errors import UpstreamError
from biaswatch.models.article import ArticleCreate
from biaswatch.services.storage import MemStorage
from config import TestingConfig

from conftest import StubCompletion, full_analysis

ARTICLE_TEXT = "Budget talks stall in the Senate\nLawmakers failed to agree on Tuesday."


def seed(storage, *specs):
    for title, source in specs:
        storage.create_article(ArticleCreate(title=title, content="Body", source=source))


def test_index_and_health(client):
    assert client.get("/").status_code == 200
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json()["dependencies"]["storage"] == "memory"


class TestAnalyzeEndpoint:
    def test_empty_body_is_400(self, client):
        response = client.post("/api/analyze", json={})
        assert response.status_code == 400
        assert response.get_json()["message"] == "Either URL or text must be provided"

    def test_non_json_body_is_400(self, client):
        response = client.post("/api/analyze", data="url=x", content_type="text/plain")
        assert response.status_code == 400

    def test_wrong_field_type_is_400(self, client):
        assert client.post("/api/analyze", json={"text": 42}).status_code == 400

    def test_text_is_analyzed_and_stored(self, client, completion, storage):
        completion.queue(full_analysis())
        response = client.post("/api/analyze", json={"text": ARTICLE_TEXT})

        assert response.status_code == 200
        body = response.get_json()
        assert body["id"] == 1
        assert body["biasScore"] == 62
        assert body["biasLabel"] == "Leaning Liberal"
        assert body["politicalLeaning"] == "Liberal"
        assert body["topics"] == {"main": "Budget", "related": ["Politics", "Economy"]}
        assert body["url"] is None
        assert storage.get_article(1).title == "Budget talks stall in Senate"

    def test_missing_dimensions_default_to_fifty(self, client, completion):
        completion.queue({"biasScore": 48})
        body = client.post("/api/analyze", json={"text": ARTICLE_TEXT}).get_json()
        assert body["multidimensionalAnalysis"] == {
            "bias": 50, "emotional": 50, "factual": 50, "political": 50, "neutralLanguage": 50,
        }

    def test_upstream_failure_is_500_with_message(self, client, completion, storage):
        completion.queue(UpstreamError("Completion service error: quota exceeded"))
        response = client.post("/api/analyze", json={"text": ARTICLE_TEXT})
        assert response.status_code == 500
        assert "quota exceeded" in response.get_json()["message"]
        assert storage.get_article_count() == 0

    def test_missing_google_key_is_500(self, storage):
        class NoKeyConfig(TestingConfig):
            GOOGLE_API_KEY = None

        client = create_app(NoKeyConfig, storage=storage).test_client()
        response = client.post("/api/analyze", json={"text": ARTICLE_TEXT})
        assert response.status_code == 500
        assert "not configured" in response.get_json()["message"]


class TestArticleEndpoints:
    def test_latest_404_when_empty(self, client):
        response = client.get("/api/articles/latest")
        assert response.status_code == 404
        assert response.get_json()["message"] == "No articles found"

    def test_latest_returns_newest(self, client, storage):
        seed(storage, ("First", "CNN"), ("Second", "NPR"))
        assert client.get("/api/articles/latest").get_json()["title"] == "Second"

    def test_recent_is_capped_at_five(self, client, storage):
        seed(storage, *[(f"Story {i}", "CNN") for i in range(7)])
        titles = [a["title"] for a in client.get("/api/articles/recent").get_json()]
        assert titles == ["Story 6", "Story 5", "Story 4", "Story 3", "Story 2"]

    def test_history_paginates_and_filters(self, client, storage):
        seed(storage, ("a", "CNN"), ("b", "Fox News"), ("c", "cnn"), ("d", "CNN"))

        page = client.get("/api/articles/history?source=CNN&page=1&limit=2").get_json()
        assert [a["title"] for a in page] == ["d", "c"]
        page = client.get("/api/articles/history?source=CNN&page=2&limit=2").get_json()
        assert [a["title"] for a in page] == ["a"]
        assert client.get("/api/articles/history?source=CNN&page=3&limit=2").get_json() == []

    def test_history_all_source_and_bad_params_use_defaults(self, client, storage):
        seed(storage, ("a", "CNN"), ("b", "Fox News"))
        page = client.get("/api/articles/history?source=all&page=zero&limit=-4").get_json()
        assert [a["title"] for a in page] == ["b", "a"]

    def test_count_with_source_and_search(self, client, storage):
        seed(storage, ("Budget stalls", "CNN"), ("Weather", "CNN"), ("Budget deal", "Fox News"))
        assert client.get("/api/articles/count").get_json() == 3
        assert client.get("/api/articles/count?source=cnn").get_json() == 2
        assert client.get("/api/articles/count?search=budget").get_json() == 2
        assert client.get("/api/articles/count?source=all&search=fox").get_json() == 1

    def test_article_detail(self, client, storage):
        seed(storage, ("Only", "BBC"))
        assert client.get("/api/articles/1").get_json()["source"] == "BBC"
        assert client.get("/api/articles/2").status_code == 404


class TestCompareEndpoint:
    def test_missing_topic_is_400(self, client):
        assert client.post("/api/compare", json={}).status_code == 400
        assert client.post("/api/compare", json={"topic": "   "}).status_code == 400

    def test_bad_sources_is_400(self, client):
        response = client.post("/api/compare", json={"topic": "budget", "sources": "CNN"})
        assert response.status_code == 400

    def test_no_coverage_still_returns_illustrative_results(self, client, completion, news_search):
        completion.queue({"results": [
            {"source": "CNN", "headline": "Budget fight", "biasScore": 60, "explanation": "Leans on costs."},
            {"source": "Fox News", "headline": "Spending spree", "biasScore": 25, "explanation": "Frames as waste."},
        ]})
        response = client.post("/api/compare", json={"topic": "budget talks"})

        assert response.status_code == 200
        results = response.get_json()
        assert len(results) == 2
        assert all(r["illustrative"] for r in results)
        assert all(r["explanation"].startswith("[Illustrative]") for r in results)
        assert results[1]["biasLabel"] == "Conservative"
        assert news_search.calls[0][0] == "budget talks"

    def test_requested_sources_replace_defaults(self, client, completion, news_search):
        completion.queue({"results": [{"source": "Reuters", "headline": "h", "biasScore": 50}]})
        client.post("/api/compare", json={"topic": "budget", "sources": ["Reuters"]})
        assert news_search.calls == [("budget", ["Reuters"])]

    def test_upstream_failure_is_500(self, client, completion):
        completion.queue(UpstreamError("Completion service error: overloaded"))
        response = client.post("/api/compare", json={"topic": "budget"})
        assert response.status_code == 500
        assert "overloaded" in response.get_json()["message"]


def test_app_without_mongo_uri_uses_memory_storage():
    app = create_app(TestingConfig)
    assert isinstance(app.extensions["biaswatch"]["storage"], MemStorage)
    assert app.test_client().get("/api/articles/count").get_json() == 0


def test_stub_completion_is_used_instead_of_gemini(storage):
    completion = StubCompletion({"biasScore": 70})
    client = create_app(TestingConfig, storage=storage, completion=completion).test_client()
    assert client.post("/api/analyze", json={"text": ARTICLE_TEXT}).get_json()["biasScore"] == 70
    assert len(completion.prompts) == 1
