"""Load fetched articles from the JSON or CSV export of the fetch step."""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List

from .errors import InputError
from .models import Article

logger = logging.getLogger(__name__)


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def normalize_records(records: Iterable[Dict[str, Any]]) -> List[Article]:
    """
    Build Articles from raw rows.

    Rows without a url or extracted content are dropped, and a repeated url
    keeps its first occurrence.
    """
    articles: List[Article] = []
    seen: set[str] = set()
    skipped = 0
    for row in records:
        url = _clean(row.get("url"))
        content = _clean(row.get("extractedContent"))
        if not url or not content:
            skipped += 1
            continue
        if url in seen:
            skipped += 1
            continue
        seen.add(url)
        published = _clean(row.get("published")) or None
        articles.append(Article(url=url, published=published, extracted_content=content))
    if skipped:
        logger.info("Skipped %d rows without content or with duplicate urls", skipped)
    return articles


def _read_rows(path: Path) -> List[Dict[str, Any]]:
    try:
        if path.suffix.lower() == ".csv":
            with path.open(newline="", encoding="utf-8") as f:
                return list(csv.DictReader(f))
        data = json.loads(path.read_text(encoding="utf-8"))
    except UnicodeDecodeError as exc:
        raise InputError(f"{path}: not UTF-8 text ({exc}).") from exc
    except csv.Error as exc:
        raise InputError(f"{path}: unreadable CSV ({exc}).") from exc
    except json.JSONDecodeError as exc:
        raise InputError(f"{path}: not valid JSON ({exc}).") from exc
    if not isinstance(data, list):
        raise InputError(f"{path}: expected a JSON array of article records.")
    return [row for row in data if isinstance(row, dict)]


def load_articles(path: Path | str) -> List[Article]:
    """Read and filter articles; raises InputError when nothing usable remains."""
    source = Path(path)
    if not source.exists():
        raise InputError(
            f"No input file at {source}. Run the fetch step to export articles first."
        )
    articles = normalize_records(_read_rows(source))
    if not articles:
        raise InputError(f"{source}: no articles with both url and extractedContent.")
    return articles
