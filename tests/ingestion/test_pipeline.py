from __future__ import annotations

from datetime import datetime, timedelta, timezone

from ingestion.models.domain import ArticleCandidate
from ingestion.services.pipeline import final_gate

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def _article(url: str, image: str | None = "https://punchng.com/img/cover.jpg") -> ArticleCandidate:
    return ArticleCandidate(
        title="Lagos Ferry Service Resumes",
        url=url,
        source="Punch",
        image_url=image,
        publish_date=NOW - timedelta(days=1),
    )


def test_final_gate_requires_http_url_and_image():
    kept = _article("https://punchng.com/lagos-ferry/")
    items = [
        kept,
        _article("mailto:desk@punchng.com"),
        _article("ftp://punchng.com/lagos-ferry.zip"),
        _article("https://example.com/lagos-ferry/"),
        _article("https://punchng.com/lagos-ferry-no-image/", image=None),
    ]

    assert final_gate(items) == [kept]
