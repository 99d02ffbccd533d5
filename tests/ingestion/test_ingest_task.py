from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, List

import pytest

pytest.importorskip("celery")

from sqlalchemy import select

from ingestion.connectors.base import PermanentError
from ingestion.connectors.news_api import NewsAPIConnector
from ingestion.db.models import JobRun, JobStatus, NewsArticle
from ingestion.db.session import session_scope
from ingestion.models.domain import SourceConfig, SourceKind
from ingestion.tasks import collect as collect_mod

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)

PUNCH = SourceConfig(name="Punch", url="https://punchng.com/topics/metro-plus/", kind=SourceKind.GENERAL)
BELLA = SourceConfig(
    name="BellaNaija",
    url="https://www.bellanaija.com/category/events/",
    kind=SourceKind.ENTERTAINMENT,
    category="events",
)

AFROBEATS_URL = "https://www.bellanaija.com/afrobeats-night-at-eko-hotel/"


def _page(published: datetime | None, image: str | None = None, summary: str = "Story body.") -> str:
    head = ""
    if published is not None:
        head += f'<meta property="article:published_time" content="{published.isoformat()}">'
    if image is not None:
        head += f'<meta property="og:image" content="{image}">'
    return f"<html><head>{head}</head><body><article><p>{summary}</p></article></body></html>"


def _site() -> Dict[str, object]:
    return {
        PUNCH.url: """
            <html><body>
              <h2><a href="/lagos-marathon/">Lagos Marathon Draws Thousands</a></h2>
              <h2><a href="/lagos-marathon-runners/">Lagos Marathon Draws Thousands of Runners</a></h2>
              <h2><a href="/lagos-old-story/">Lagos Bridge Reopens After Repairs</a></h2>
              <h2><a href="/lagos-undated/">Lagos Undated Feature Story</a></h2>
              <h2><a href="https://example.com/lagos-fake">Lagos Placeholder Story</a></h2>
            </body></html>
        """,
        BELLA.url: f'<html><body><h2><a href="{AFROBEATS_URL}">Afrobeats Night Lights Up Eko Hotel</a></h2></body></html>',
        "https://punchng.com/lagos-marathon/": _page(NOW - timedelta(days=1)),
        "https://punchng.com/lagos-marathon-runners/": _page(NOW - timedelta(days=1), image="/img/runners.jpg"),
        "https://punchng.com/lagos-old-story/": _page(NOW - timedelta(days=90), image="/img/bridge.jpg"),
        "https://punchng.com/lagos-undated/": "<html><body><p>No date anywhere.</p></body></html>",
        AFROBEATS_URL: _page(NOW - timedelta(days=2), image="https://www.bellanaija.com/img/afrobeats.jpg"),
    }


class FakeWeb:
    def __init__(self, pages: Dict[str, object]) -> None:
        self.pages = pages
        self.calls: List[str] = []

    def __call__(self, url: str) -> str:
        self.calls.append(url)
        page = self.pages.get(url)
        if page is None:
            raise PermanentError(f"{url} error: 404")
        if isinstance(page, Exception):
            raise page
        return page  # type: ignore[return-value]


@pytest.fixture
def web(monkeypatch):
    fake = FakeWeb(_site())
    monkeypatch.setattr(collect_mod, "FETCH_FACTORY", lambda _settings: fake)
    return fake


@pytest.fixture
def settings(make_settings):
    return make_settings(news_sources=[PUNCH, BELLA], news_api_key=None, max_candidates_per_source=5)


def _stored(settings) -> List[NewsArticle]:
    with session_scope(settings) as session:
        return list(session.execute(select(NewsArticle).order_by(NewsArticle.external_url)).scalars())


def test_ingest_core_persists_fresh_deduplicated_articles(web, settings):
    report = collect_mod.ingest_core("general", 10, settings=settings, now=NOW)

    assert report.discovered == 5
    assert report.validated == 3
    assert report.deduplicated == 2
    assert report.inserted == 2 and report.failed == 0
    assert [a.url for a in report.articles] == ["https://punchng.com/lagos-marathon-runners/", AFROBEATS_URL]

    rows = _stored(settings)
    assert [r.external_url for r in rows] == ["https://punchng.com/lagos-marathon-runners/", AFROBEATS_URL]
    runners = next(r for r in rows if r.source == "Punch")
    assert runners.featured_image_url == "https://punchng.com/img/runners.jpg"
    assert runners.category == "general"
    assert all(r.is_active for r in rows)


def test_placeholder_urls_are_never_fetched(web, settings):
    collect_mod.ingest_core("general", 10, settings=settings, now=NOW)

    assert not any("example.com" in url for url in web.calls)


def test_second_run_writes_nothing_new(web, settings):
    collect_mod.ingest_core("general", 10, settings=settings, now=NOW)
    second = collect_mod.ingest_core("general", 10, settings=settings, now=NOW)

    assert second.inserted == 0
    assert second.updated == 0
    assert len(_stored(settings)) == 2


def test_failing_source_does_not_stop_the_run(web, settings):
    web.pages[BELLA.url] = PermanentError("HTTP 403")

    report = collect_mod.ingest_core("general", 10, settings=settings, now=NOW)

    assert [a.url for a in report.articles] == ["https://punchng.com/lagos-marathon-runners/"]


def test_unexpected_fetch_error_only_drops_its_candidate(web, settings):
    web.pages["https://punchng.com/lagos-marathon/"] = ValueError("Invalid non-printable ASCII character in URL")

    report = collect_mod.ingest_core("general", 10, settings=settings, now=NOW)

    assert report.validated == 2
    assert [a.url for a in report.articles] == ["https://punchng.com/lagos-marathon-runners/", AFROBEATS_URL]


def test_category_selects_sources(web, settings):
    report = collect_mod.ingest_core("events", 10, settings=settings, now=NOW)

    assert PUNCH.url not in web.calls
    assert [a.url for a in report.articles] == [AFROBEATS_URL]
    assert report.articles[0].category == "events"


def test_limit_caps_returned_articles_only(web, settings):
    report = collect_mod.ingest_core("general", 1, settings=settings, now=NOW)

    assert len(report.articles) == 1
    assert report.inserted == 2


def test_news_api_candidates_join_the_batch(web, settings):
    def provider(_category: str, _limit: int):
        return [
            {
                "title": "Afrobeats Night Lights Up Eko Hotel Stage",
                "description": "Duplicate coverage from another outlet.",
                "url": "https://guardian.ng/afrobeats-night/",
                "urlToImage": "https://guardian.ng/img/a.jpg",
                "publishedAt": (NOW - timedelta(hours=3)).isoformat(),
                "source": {"name": "Guardian"},
            },
            {
                "title": "Lagos State Unveils New BRT Corridor",
                "description": "Transport upgrade for commuters.",
                "url": "https://guardian.ng/brt-corridor/",
                "urlToImage": "https://guardian.ng/img/brt.jpg",
                "publishedAt": (NOW - timedelta(hours=5)).isoformat(),
                "source": {"name": "Guardian"},
            },
        ]

    report = collect_mod.ingest_core(
        "general", 10, settings=settings, now=NOW, news_api=NewsAPIConnector(provider=provider)
    )

    urls = [a.url for a in report.articles]
    assert "https://guardian.ng/brt-corridor/" in urls
    assert "https://guardian.ng/afrobeats-night/" not in urls
    # dated API rows are not fetched again
    assert not any("guardian.ng" in url for url in web.calls)


def test_stale_rows_are_retired_on_each_run(web, settings):
    collect_mod.ingest_core("general", 10, settings=settings, now=NOW)

    collect_mod.ingest_core("general", 10, settings=settings, now=NOW + timedelta(days=70))

    assert all(not r.is_active for r in _stored(settings))


def test_job_run_is_recorded(web, settings):
    report = collect_mod.ingest_core("general", 10, settings=settings, now=NOW)

    with session_scope(settings) as session:
        job = session.execute(select(JobRun).where(JobRun.trace_id == report.trace_id)).scalar_one()
        assert job.status is JobStatus.SUCCEEDED
        assert job.category == "general"


def test_store_failure_marks_job_failed(web, settings, monkeypatch):
    def broken(*_args, **_kwargs):
        raise RuntimeError("store unreachable")

    monkeypatch.setattr(collect_mod, "upsert_articles", broken)

    with pytest.raises(RuntimeError):
        collect_mod.ingest_core("general", 10, settings=settings, now=NOW)

    with session_scope(settings) as session:
        jobs = session.execute(select(JobRun)).scalars().all()
        assert [j.status for j in jobs] == [JobStatus.FAILED]
        assert jobs[0].error_message == "store unreachable"
