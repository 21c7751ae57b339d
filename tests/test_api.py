"""HTTP contract of the searchrag API."""

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from app.api import app, pipeline_factory

from .conftest import page_text, results_for


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


def use_pipeline(pipeline):
    app.dependency_overrides[pipeline_factory] = lambda: (lambda: pipeline)


def split_body(text):
    answer_text, _, envelope_line = text.rpartition("\n")
    return answer_text, json.loads(envelope_line)


def test_index_identifies_service(client):
    response = client.get("/")
    assert response.status_code == 200
    assert isinstance(response.json(), str)
    assert "searchrag" in response.json()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_go_streams_fragments_then_envelope(client, make_pipeline):
    links = ["https://en.wikipedia.org/wiki/Paris", "https://search.brave.com/images?q=paris"]
    pipeline, _ = make_pipeline(
        results_for(links),
        {links[0]: page_text("Paris is the capital of France")},
        fragments=["Paris", " is", " the capital."],
    )
    use_pipeline(pipeline)

    response = client.post("/go", json={"message": "What is the capital of France?"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    answer_text, envelope = split_body(response.text)
    assert answer_text == "Paris is the capital."
    assert envelope == {
        "userMessage": "What is the capital of France?",
        "sources": [{"title": f"Title for {links[0]}", "link": links[0]}],
        "answer": "Paris is the capital.",
        "suggestedQuestions": ["Q1?", "Q2?", "Q3?"],
    }


def test_go_respects_disabled_fields(client, make_pipeline):
    links = ["https://a.example"]
    pipeline, _ = make_pipeline(results_for(links), {links[0]: page_text("a")}, fragments=["done"])
    use_pipeline(pipeline)

    response = client.post(
        "/go",
        json={"message": "a", "returnSources": False, "returnFollowUpQuestions": False},
    )

    _, envelope = split_body(response.text)
    assert "sources" not in envelope
    assert "suggestedQuestions" not in envelope


def test_go_partial_source_failure_still_succeeds(client, make_pipeline):
    links = ["https://ok.example", "https://down.example"]
    pipeline, _ = make_pipeline(
        results_for(links),
        {links[0]: page_text("ok"), links[1]: TimeoutError("read timed out")},
        fragments=["ok"],
    )
    use_pipeline(pipeline)

    response = client.post("/go", json={"message": "ok"})

    assert response.status_code == 200
    _, envelope = split_body(response.text)
    assert [source["link"] for source in envelope["sources"]] == ["https://ok.example"]


def test_go_pre_stream_failure_returns_error_object(client, make_pipeline):
    pipeline, _ = make_pipeline([], {}, rephrase_error=RuntimeError("rate limited"))
    use_pipeline(pipeline)

    response = client.post("/go", json={"message": "anything"})

    assert response.status_code == 500
    assert set(response.json()) == {"error"}
    assert "rate limited" in response.json()["error"]


def test_go_pipeline_construction_failure_returns_error_object(client):
    def broken():
        raise RuntimeError("BRAVE_SEARCH_API_KEY missing")

    app.dependency_overrides[pipeline_factory] = lambda: broken

    response = client.post("/go", json={"message": "anything"})

    assert response.status_code == 500
    assert response.json() == {"error": "BRAVE_SEARCH_API_KEY missing"}


def test_go_builds_pipeline_off_the_event_loop(client, make_pipeline):
    pipeline, _ = make_pipeline([], {}, fragments=["ok"])
    loops = []

    def build():
        try:
            loops.append(asyncio.get_running_loop())
        except RuntimeError:
            loops.append(None)
        return pipeline

    app.dependency_overrides[pipeline_factory] = lambda: build

    response = client.post("/go", json={"message": "anything"})

    assert response.status_code == 200
    assert loops == [None]


def test_go_requires_message(client):
    response = client.post("/go", json={"returnSources": True})

    assert response.status_code == 422
    assert "message" in response.json()["error"]
