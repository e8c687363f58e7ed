"""Structured fact extraction over token-bounded article batches."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from .batching import Batch, batches_for_settings
from .concurrency import run_bounded
from .config import Settings
from .errors import MalformedOutputError
from .model_client import ModelClient
from .models import Article, Fact, FactsEnvelope
from .prompt_text import load_prompt
from .retry import RetryPolicy, Sleep, with_retry
from .schema import load_facts_schema, validate_facts_payload

logger = logging.getLogger(__name__)


def build_batch_prompt(articles: Sequence[Article]) -> str:
    """Render each article between BEGIN/END markers, numbered from 1."""
    blocks = []
    for idx, article in enumerate(articles, start=1):
        lines = [f"BEGIN ARTICLE {idx}", f"url: {article.url}"]
        if article.published:
            lines.append(f"published: {article.published}")
        lines.extend(["content:", article.extracted_content, f"END ARTICLE {idx}"])
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def parse_facts_response(text: str, *, label: str = "facts batch") -> List[Fact]:
    """
    Parse a structured extraction response into Facts.

    Accepts the schema's ``{"facts": [...]}`` object or a bare array. Anything
    else raises MalformedOutputError.
    """
    try:
        data: Any = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedOutputError(f"{label}: response is not valid JSON ({exc}).") from exc

    payload: Dict[str, Any] = {"facts": data} if isinstance(data, list) else data
    if not isinstance(payload, dict):
        raise MalformedOutputError(
            f"{label}: expected an object with a facts array, got {type(data).__name__}."
        )
    try:
        validate_facts_payload(payload)
        envelope = FactsEnvelope.model_validate(payload)
    except (ValueError, ValidationError) as exc:
        raise MalformedOutputError(f"{label}: {exc}") from exc
    return envelope.facts


class FactExtractor:
    """Extract facts from every batch with bounded concurrency and retries."""

    def __init__(
        self,
        settings: Settings,
        model_client: ModelClient,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.model_client = model_client
        self.retry_policy = retry_policy or RetryPolicy.from_settings(settings)
        self._sleep = sleep

    def plan(self, articles: Sequence[Article]) -> List[Batch]:
        return batches_for_settings(articles, self.settings)

    async def extract(self, articles: Sequence[Article]) -> List[Fact]:
        batches = self.plan(articles)
        logger.info(
            "Articles: %d. Batches: %d. Model: %s",
            len(articles),
            len(batches),
            self.settings.model,
        )
        system_prompt = load_prompt("extract_system.md")
        guidance = load_prompt("extract_user.md")
        schema = load_facts_schema()
        total = len(batches)

        async def process(batch: Batch) -> List[Fact]:
            label = f"facts batch {batch.index}/{total}"
            user_prompt = f"{guidance}\n\n{build_batch_prompt(batch.articles)}"
            content = await with_retry(
                lambda: self.model_client.generate(
                    system_prompt, user_prompt, schema=schema, step=label
                ),
                label,
                self.retry_policy,
                sleep=self._sleep,
            )
            try:
                facts = parse_facts_response(content, label=label)
            except MalformedOutputError:
                logger.error("%s: JSON parse failed.", label)
                raise
            logger.info("%s: ok (%d facts)", label, len(facts))
            return facts

        per_batch = await run_bounded(batches, self.settings.request_concurrency, process)
        return [fact for facts in per_batch for fact in facts]
