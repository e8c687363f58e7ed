"""Two-level map-reduce from facts to one executive report."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from .config import Settings
from .model_client import ModelClient
from .models import Fact
from .prompt_text import load_prompt
from .retry import RetryPolicy, Sleep, with_retry

logger = logging.getLogger(__name__)

MERGE_NOTE = (
    "The following are partial summaries created from the dataset in chunks. "
    "Merge them into a single weekly brief."
)


def chunk_facts(facts: Sequence[Fact], size: int) -> List[List[Fact]]:
    if size < 1:
        raise ValueError("chunk size must be >= 1.")
    return [list(facts[i : i + size]) for i in range(0, len(facts), size)]


def _parse_published(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def compute_time_window(facts: Sequence[Fact], placeholder: str = "the last week") -> str:
    """Return 'YYYY-MM-DD to YYYY-MM-DD' over parseable dates, else ``placeholder``."""
    dates = sorted(d for d in (_parse_published(f.published) for f in facts) if d)
    if not dates:
        return placeholder
    return f"{dates[0]:%Y-%m-%d} to {dates[-1]:%Y-%m-%d}"


def build_executive_prompt(time_window: str) -> str:
    return load_prompt("executive_report.md").replace("{time_window}", time_window)


def build_chunk_prompt(chunk: Sequence[Fact]) -> str:
    facts_json = json.dumps([fact.to_payload() for fact in chunk], ensure_ascii=False)
    return f"{load_prompt('chunk_user.md')}\n\nFacts JSON:\n{facts_json}"


def build_final_prompt(time_window: str, briefs: Sequence[str]) -> str:
    sections = "\n\n".join(
        f"---\n[Chunk {idx}]\n{brief}" for idx, brief in enumerate(briefs, start=1)
    )
    return (
        f"{build_executive_prompt(time_window)}\n\n{MERGE_NOTE}\n\n"
        f"Chunk briefs:\n{sections}\n\nProduce the final brief now in Markdown only."
    )


class HierarchicalReducer:
    """Summarize fixed-size fact chunks one at a time, then merge the briefs."""

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

    async def _generate(self, system_prompt: str, user_prompt: str, label: str) -> str:
        return await with_retry(
            lambda: self.model_client.generate(system_prompt, user_prompt, step=label),
            label,
            self.retry_policy,
            sleep=self._sleep,
        )

    async def summarize_chunks(self, facts: Sequence[Fact]) -> List[str]:
        chunks = chunk_facts(facts, self.settings.reduce_chunk_size)
        system_prompt = load_prompt("chunk_system.md")
        briefs: List[str] = []
        for idx, chunk in enumerate(chunks, start=1):
            label = f"reduce chunk {idx}/{len(chunks)}"
            briefs.append(await self._generate(system_prompt, build_chunk_prompt(chunk), label))
            logger.info("%s: ok (%d facts)", label, len(chunk))
        return briefs

    async def reduce(self, facts: Sequence[Fact]) -> str:
        briefs = await self.summarize_chunks(facts)
        time_window = compute_time_window(facts, self.settings.time_window_placeholder)
        report = await self._generate(
            load_prompt("final_system.md"),
            build_final_prompt(time_window, briefs),
            "final reduce",
        )
        logger.info("final reduce: ok (%d chunk briefs, window %s)", len(briefs), time_window)
        return report
