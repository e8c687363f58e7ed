import json

from typer.testing import CliRunner

from feed_digest import pipeline
from feed_digest.cli import _failure_message, app
from feed_digest.errors import ModelCallError

runner = CliRunner()


def _write_articles(path, count=2):
    path.write_text(
        json.dumps(
            [
                {"url": f"https://example.com/{i}", "extractedContent": f"Body {i}"}
                for i in range(count)
            ]
        ),
        encoding="utf-8",
    )


class FakeModelClient:
    facts_text = None

    def __init__(self, settings, client=None):
        self.settings = settings
        self.closed = False

    async def aclose(self):
        self.closed = True

    async def generate(self, system_prompt, user_prompt, *, schema=None, step="", **_kwargs):
        if schema is not None:
            if self.facts_text is not None:
                return self.facts_text
            return json.dumps({"facts": []})
        return "# Report" if step == "final reduce" else "- brief"


class MalformedModelClient(FakeModelClient):
    facts_text = "definitely not json"


def test_summarize_writes_report(tmp_path, monkeypatch):
    monkeypatch.setattr(pipeline, "ModelClient", FakeModelClient)
    source = tmp_path / "articles.json"
    _write_articles(source)
    out = tmp_path / "summary.md"
    facts_out = tmp_path / "facts.json"

    result = runner.invoke(
        app,
        ["summarize", str(source), "--out", str(out), "--facts-out", str(facts_out)],
    )

    assert result.exit_code == 0, result.output
    assert out.read_text(encoding="utf-8") == "# Report"
    assert json.loads(facts_out.read_text(encoding="utf-8")) == []


def test_malformed_output_writes_no_report(tmp_path, monkeypatch):
    monkeypatch.setattr(pipeline, "ModelClient", MalformedModelClient)
    source = tmp_path / "articles.json"
    _write_articles(source)
    out = tmp_path / "summary.md"

    result = runner.invoke(app, ["summarize", str(source), "--out", str(out)])

    assert result.exit_code == 1
    assert "Summarization failed" in result.output
    assert not out.exists()


def test_missing_input_exits_non_zero(tmp_path):
    out = tmp_path / "summary.md"

    result = runner.invoke(app, ["summarize", str(tmp_path / "nope.json"), "--out", str(out)])

    assert result.exit_code == 1
    assert not out.exists()


def test_invalid_concurrency_is_rejected(tmp_path):
    source = tmp_path / "articles.json"
    _write_articles(source)

    result = runner.invoke(app, ["summarize", str(source), "--concurrency", "0"])

    assert result.exit_code != 0


def test_batches_command_prints_plan(tmp_path):
    source = tmp_path / "articles.json"
    _write_articles(source, count=3)

    result = runner.invoke(app, ["batches", str(source)])

    assert result.exit_code == 0, result.output
    assert "batch 1: 3 articles" in result.output
    assert "3 articles in 1 batches." in result.output


class NotFoundModelClient(FakeModelClient):
    async def generate(self, system_prompt, user_prompt, *, schema=None, step="", **_kwargs):
        raise ModelCallError("OpenAI request failed (404)", status_code=404)


def test_failure_message_names_the_failed_unit(tmp_path, monkeypatch):
    monkeypatch.setattr(pipeline, "ModelClient", NotFoundModelClient)
    source = tmp_path / "articles.json"
    _write_articles(source)
    out = tmp_path / "summary.md"

    result = runner.invoke(app, ["summarize", str(source), "--out", str(out)])

    assert result.exit_code == 1
    output = " ".join(result.output.split())
    assert "OpenAI request failed (404) (while running facts batch 1/1)" in output
    assert not out.exists()


def test_failure_message_without_notes_is_plain():
    assert _failure_message(ValueError("plain")) == "plain"
