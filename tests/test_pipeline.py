import asyncio
import json

import pytest

from feed_digest.config import Settings
from feed_digest.errors import InputError, MalformedOutputError
from feed_digest.models import Article
from feed_digest import pipeline as pipeline_module
from feed_digest.pipeline import DigestPipeline, RunState


def _fact_payload(url):
    return {
        "url": url,
        "published": "2024-01-03T00:00:00Z",
        "isGamingRelated": True,
        "categories": ["M&A"],
        "summary": "Publisher acquires studio.",
        "signals": ["consolidation"],
        "companies": ["Example"],
        "regions": ["US"],
        "confidence": 0.9,
    }


class ScriptedClient:
    def __init__(self, facts_text=None):
        self.facts_text = facts_text
        self.steps = []

    async def generate(self, system_prompt, user_prompt, *, schema=None, step="", **_kwargs):
        self.steps.append(step)
        if schema is not None:
            if self.facts_text is not None:
                return self.facts_text
            urls = [line[5:] for line in user_prompt.splitlines() if line.startswith("url: ")]
            return json.dumps({"facts": [_fact_payload(url) for url in urls]})
        if step == "final reduce":
            return "# Weekly brief"
        return "- chunk bullet"


async def _no_sleep(_delay):
    return None


def _articles():
    return [
        Article(url=f"https://example.com/{i}", extracted_content=f"Article body {i}")
        for i in range(3)
    ]


def _pipeline(client):
    return DigestPipeline(Settings(openai_api_key="test-key"), client, sleep=_no_sleep)


def test_run_reaches_done_with_report():
    client = ScriptedClient()
    pipeline = _pipeline(client)

    result = asyncio.run(pipeline.run(_articles()))

    assert pipeline.state is RunState.DONE
    assert result.report == "# Weekly brief"
    assert result.article_count == 3
    assert result.batch_count == 1
    assert len(result.facts) == 3
    assert client.steps == ["facts batch 1/1", "reduce chunk 1/1", "final reduce"]


def test_empty_input_fails_before_any_call():
    client = ScriptedClient()
    pipeline = _pipeline(client)

    with pytest.raises(InputError):
        asyncio.run(pipeline.run([]))

    assert pipeline.state is RunState.FAILED
    assert client.steps == []


def test_malformed_extraction_fails_the_run():
    client = ScriptedClient(facts_text="Sorry, I cannot do that.")
    pipeline = _pipeline(client)

    with pytest.raises(MalformedOutputError):
        asyncio.run(pipeline.run(_articles()))

    assert pipeline.state is RunState.FAILED
    assert "final reduce" not in client.steps


class ClosingClient(ScriptedClient):
    instances = []

    def __init__(self, settings, facts_text=None):
        super().__init__(facts_text)
        self.closed = False
        ClosingClient.instances.append(self)

    async def aclose(self):
        self.closed = True


class FailingClosingClient(ClosingClient):
    def __init__(self, settings):
        super().__init__(settings, facts_text="not json")


def test_summarize_articles_closes_the_client_it_builds(monkeypatch):
    ClosingClient.instances = []
    monkeypatch.setattr(pipeline_module, "ModelClient", ClosingClient)

    result = pipeline_module.summarize_articles(_articles(), Settings(openai_api_key="test-key"))

    assert result.report == "# Weekly brief"
    assert [client.closed for client in ClosingClient.instances] == [True]


def test_summarize_articles_closes_client_on_failure(monkeypatch):
    ClosingClient.instances = []
    monkeypatch.setattr(pipeline_module, "ModelClient", FailingClosingClient)

    with pytest.raises(MalformedOutputError):
        pipeline_module.summarize_articles(_articles(), Settings(openai_api_key="test-key"))

    assert [client.closed for client in ClosingClient.instances] == [True]


def test_summarize_articles_leaves_caller_client_open():
    client = ClosingClient(None)

    pipeline_module.summarize_articles(_articles(), Settings(openai_api_key="test-key"), client)

    assert client.closed is False
