"""HTTP surface: envelopes, lenient query parsing and error mapping."""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from newsdesk.api import app, parse_positive_int
from newsdesk.errors import ContentStoreError
from newsdesk.services.cache import cache
from newsdesk.services.database import db


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(db, "db_path", tmp_path / "api.db")
    monkeypatch.setattr(cache, "db_path", tmp_path / "api-cache.db")
    monkeypatch.setattr(cache, "enabled", True)
    with TestClient(app) as test_client:
        yield test_client


def article_body(title="Parliament passes budget", **fields):
    body = {
        "title": title,
        "description": "Lawmakers approved the spending plan",
        "content": "Full story",
        "category": ["politics"],
        "tags": ["economy"],
        "published_at": (datetime.now(timezone.utc) - timedelta(hours=1)).isoformat(),
    }
    body.update(fields)
    return body


def test_parse_positive_int():
    assert parse_positive_int("5", 10) == 5
    assert parse_positive_int(None, 10) == 10
    assert parse_positive_int("abc", 10) == 10
    assert parse_positive_int("0", 10) == 10
    assert parse_positive_int("-3", 10) == 10


def test_status(client):
    assert client.get("/status").json()["status"] == "ok"


def test_create_article(client):
    response = client.post("/articles", json=article_body())

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "success"
    assert body["data"]["article"]["slug"] == "parliament-passes-budget"
    assert body["data"]["article"]["isLive"] is False


def test_create_requires_title(client):
    body = article_body()
    del body["title"]

    response = client.post("/articles", json=body)

    assert response.status_code == 400
    payload = response.json()
    assert payload["status"] == "fail"
    assert payload["message"] == "Validation failed"
    assert "title" in payload["errors"]


def test_duplicate_slug_is_a_client_error(client):
    client.post("/articles", json=article_body())
    response = client.post("/articles", json=article_body())
    assert response.status_code == 400
    assert response.json() == {"status": "fail", "message": "Slug must be unique"}


def test_feed_is_cached_on_second_read(client):
    client.post("/articles", json=article_body())

    first = client.get("/feed").json()
    second = client.get("/feed").json()

    assert first["cached"] is False
    assert second["cached"] is True
    assert first["data"] == second["data"]
    assert first["data"]["articles"][0]["isFresh"] is True
    assert first["data"]["meta"]["total"] == 1


def test_bad_limit_falls_back_to_default(client):
    client.get("/feed")
    # Both resolve to the default limit, so they share the cached entry
    assert client.get("/feed?limit=abc").json()["cached"] is True
    assert client.get("/feed?limit=-4").json()["cached"] is True


def test_category_feed(client):
    client.post("/articles", json=article_body())
    client.post("/articles", json=article_body("Derby ends level", category=["sports"]))

    payload = client.get("/feed/categories/Politics").json()["data"]

    assert [a["slug"] for a in payload["articles"]] == ["parliament-passes-budget"]
    assert payload["meta"]["category"] == "Politics"
    assert payload["meta"]["freshnessThreshold"] == "36 hours"


def test_tag_feed_matches_partial_tags(client):
    client.post("/articles", json=article_body())

    payload = client.get("/feed/tags/econ").json()["data"]

    assert [a["slug"] for a in payload["articles"]] == ["parliament-passes-budget"]
    assert payload["meta"]["tag"] == "econ"


def test_news_by_category(client):
    client.post("/articles", json=article_body())

    payload = client.get("/news/category/politics?page=1&limit=5").json()["data"]

    assert payload["meta"]["page"] == 1
    assert payload["meta"]["limit"] == 5
    assert payload["meta"]["totalPages"] == 1


def test_article_list_envelope(client):
    client.post("/articles", json=article_body())

    body = client.get("/articles?page=x&limit=2").json()

    assert body["status"] == "success"
    assert body["cached"] is False
    assert body["currentPage"] == 1
    assert body["results"] == 1
    assert body["data"]["articles"][0]["slug"] == "parliament-passes-budget"


def test_unknown_article_is_404(client):
    response = client.get("/articles/no-such-story")
    assert response.status_code == 404
    assert response.json() == {"status": "fail", "message": "Article not found"}


def test_update_article(client):
    client.post("/articles", json=article_body())

    response = client.put("/articles/parliament-passes-budget", json={"title": "Budget passes at last"})

    assert response.status_code == 200
    assert response.json()["data"]["article"]["slug"] == "budget-passes-at-last"
    assert client.get("/articles/parliament-passes-budget").status_code == 404


def test_live_coverage_endpoints(client):
    created = client.post("/articles", json=article_body("Cup final live", isLive=True)).json()
    article_id = created["data"]["article"]["id"]

    update = client.post(
        f"/articles/{article_id}/live-updates",
        json={"content_title": "Goal", "content_description": "12'", "content_detail": "Header"},
    ).json()["data"]["update"]
    marked = client.patch(f"/articles/{article_id}/mark-key/{update['id']}")
    article = client.get("/articles/cup-final-live").json()["data"]

    assert marked.status_code == 200
    assert marked.json()["data"]["keyEvent"]["isKey"] is True
    assert [e["content_title"] for e in article["keyEvents"]] == ["Goal"]

    ended = client.patch(f"/articles/{article_id}/end-live").json()["data"]["article"]
    assert ended["isLive"] is False

    rejected = client.post(
        f"/articles/{article_id}/live-updates",
        json={"content_title": "Late", "content_description": "90'", "content_detail": "Whistle"},
    )
    assert rejected.status_code == 400
    assert rejected.json()["message"] == "Article is not live"


def test_delete_article(client):
    article_id = client.post("/articles", json=article_body()).json()["data"]["article"]["id"]

    assert client.delete(f"/articles/{article_id}").json()["status"] == "success"
    assert client.delete(f"/articles/{article_id}").status_code == 404


def test_promote_headline_endpoint(client):
    article_id = client.post("/articles", json=article_body()).json()["data"]["article"]["id"]

    response = client.patch(f"/articles/{article_id}/promote-headline")
    headline = client.get("/articles/headline").json()["data"]["headline"]

    assert response.json()["data"]["article"]["isHeadline"] is True
    assert headline["id"] == article_id
    assert client.patch("/articles/missing/promote-category-headline").status_code == 404


def test_headline_missing_is_404(client):
    response = client.get("/articles/headline")
    assert response.status_code == 404
    assert response.json()["status"] == "fail"


def test_store_failure_is_a_server_error(client, monkeypatch):
    async def failing_find(*args, **kwargs):
        raise ContentStoreError("boom")

    monkeypatch.setattr(db, "find", failing_find)

    response = client.get("/feed?limit=3")

    assert response.status_code == 500
    assert response.json() == {"status": "error", "message": "boom"}
