"""Group articles into token-bounded extraction batches."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

from .config import Settings
from .models import Article
from .tokens import estimate_tokens


@dataclass
class Batch:
    index: int
    articles: List[Article] = field(default_factory=list)
    estimated_tokens: int = 0

    def __len__(self) -> int:
        return len(self.articles)


def batch_ceiling(
    max_input_tokens: int,
    max_output_tokens: int,
    system_overhead: int,
    floor: int = 3000,
) -> int:
    """Token budget for the articles of one batch, never below ``floor``."""
    return max(floor, max_input_tokens - system_overhead - max_output_tokens)


def article_cost(article: Article, per_article_overhead: int = 50) -> int:
    return estimate_tokens(article.extracted_content) + per_article_overhead


def assemble_batches(
    articles: Sequence[Article],
    max_input_tokens: int,
    max_output_tokens: int,
    system_overhead: int,
    *,
    per_article_overhead: int = 50,
    floor: int = 3000,
) -> List[Batch]:
    """
    Split ``articles`` into ordered batches under the token ceiling.

    An article is never split; one that alone exceeds the ceiling gets a
    batch of its own.
    """
    ceiling = batch_ceiling(max_input_tokens, max_output_tokens, system_overhead, floor)
    batches: List[Batch] = []
    current = Batch(index=1)
    for article in articles:
        cost = article_cost(article, per_article_overhead)
        if current.articles and current.estimated_tokens + cost > ceiling:
            batches.append(current)
            current = Batch(index=len(batches) + 1)
        current.articles.append(article)
        current.estimated_tokens += cost
    if current.articles:
        batches.append(current)
    return batches


def batches_for_settings(articles: Sequence[Article], settings: Settings) -> List[Batch]:
    return assemble_batches(
        articles,
        settings.max_input_tokens,
        settings.max_output_tokens,
        settings.system_overhead_tokens,
        per_article_overhead=settings.per_article_overhead_tokens,
        floor=settings.min_batch_tokens,
    )
