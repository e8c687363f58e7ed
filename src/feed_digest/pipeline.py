"""Run-level orchestration: load, extract, reduce.

A run moves LOADING -> EXTRACTING -> REDUCING -> DONE and lands in FAILED on
any unrecovered error. Nothing is persisted between runs; a failed run has to
be started again from the beginning.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .config import Settings
from .errors import InputError
from .extractor import FactExtractor
from .model_client import ModelClient
from .models import Article, Fact
from .reducer import HierarchicalReducer
from .retry import RetryPolicy, Sleep

logger = logging.getLogger(__name__)


class RunState(str, enum.Enum):
    LOADING = "loading"
    EXTRACTING = "extracting"
    REDUCING = "reducing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class DigestResult:
    report: str
    facts: List[Fact]
    article_count: int
    batch_count: int


@dataclass
class DigestPipeline:
    settings: Settings
    model_client: ModelClient
    retry_policy: Optional[RetryPolicy] = None
    sleep: Sleep = asyncio.sleep
    state: RunState = field(default=RunState.LOADING, init=False)

    def __post_init__(self) -> None:
        policy = self.retry_policy or RetryPolicy.from_settings(self.settings)
        self.extractor = FactExtractor(
            self.settings, self.model_client, retry_policy=policy, sleep=self.sleep
        )
        self.reducer = HierarchicalReducer(
            self.settings, self.model_client, retry_policy=policy, sleep=self.sleep
        )

    async def run(self, articles: Sequence[Article]) -> DigestResult:
        self.state = RunState.LOADING
        try:
            if not articles:
                raise InputError("No articles to summarize.")
            logger.info("Loaded %d articles", len(articles))
            batch_count = len(self.extractor.plan(articles))

            self.state = RunState.EXTRACTING
            facts = await self.extractor.extract(articles)

            self.state = RunState.REDUCING
            report = await self.reducer.reduce(facts)
        except BaseException:
            self.state = RunState.FAILED
            raise
        self.state = RunState.DONE
        return DigestResult(
            report=report,
            facts=facts,
            article_count=len(articles),
            batch_count=batch_count,
        )


def summarize_articles(
    articles: Sequence[Article],
    settings: Settings,
    model_client: Optional[ModelClient] = None,
) -> DigestResult:
    """Synchronous entry point used by the CLI."""
    owned = model_client is None
    client = model_client or ModelClient(settings)
    pipeline = DigestPipeline(settings, client)

    async def _run() -> DigestResult:
        try:
            return await pipeline.run(articles)
        finally:
            if owned:
                await client.aclose()

    return asyncio.run(_run())
