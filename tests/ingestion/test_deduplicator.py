from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import pytest

from ingestion.models.domain import ArticleCandidate
from ingestion.services.deduplicator import (
    DedupState,
    are_titles_similar,
    dedupe,
    normalize_title,
    significant_words,
    title_similarity,
)

PUBLISHED = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _article(title: str, url: str, image: Optional[str] = None, source: str = "Punch") -> ArticleCandidate:
    return ArticleCandidate(title=title, url=url, source=source, image_url=image, publish_date=PUBLISHED)


def test_normalize_title_strips_punctuation_and_spaces():
    assert normalize_title("  Lagos:  Marathon -- Draws   Thousands!! ") == "lagos marathon draws thousands"


def test_significant_words_drop_short_connectors():
    assert significant_words("burna boy rocks the afronation stage") == {"burna", "rocks", "afronation", "stage"}


def test_elaborated_title_is_similar_to_short_one():
    short = "Lagos Marathon Draws Thousands"
    longer = "Lagos Marathon Draws Thousands of Runners"
    assert title_similarity(short, longer) >= 0.7
    assert are_titles_similar(short, longer)


def test_unrelated_titles_stay_distinct():
    a = "Lagos Marathon Draws Thousands"
    b = "Tech Meetup Lagos Pitch Night"
    assert title_similarity(a, b) < 0.7
    assert not are_titles_similar(a, b)


def test_similarity_is_relative_to_smaller_set():
    # 2 shared of min(2, 7) -> 1.0 although Jaccard would be 2/7
    assert title_similarity(
        "Eko Atlantic Concert",
        "Thousands attend Atlantic Concert weekend festival Victoria",
    ) == pytest.approx(1.0)


def test_titles_without_significant_words_are_never_similar():
    assert title_similarity("Big day out", "Big day out") == 0.0

    state = dedupe([_article("Big day out", "https://punchng.com/1"), _article("Big day out", "https://punchng.com/2")])

    assert [a.url for a in state.accepted] == ["https://punchng.com/1", "https://punchng.com/2"]


def test_image_bearing_duplicate_replaces_imageless_one():
    a = _article("Lagos Marathon Draws Thousands", "https://punchng.com/a")
    b = _article("Lagos Marathon Draws Thousands of Runners", "https://thecable.ng/b", image="https://thecable.ng/b.jpg")

    state = dedupe([a, b])

    assert len(state.accepted) == 1
    assert state.accepted[0].url == "https://thecable.ng/b"
    assert state.accepted[0].image_url == "https://thecable.ng/b.jpg"


def test_first_item_kept_when_it_already_has_image():
    a = _article("Lagos Marathon Draws Thousands", "https://punchng.com/a", image="https://punchng.com/a.jpg")
    b = _article("Lagos Marathon Draws Thousands of Runners", "https://thecable.ng/b", image="https://thecable.ng/b.jpg")

    state = dedupe([a, b])

    assert [x.url for x in state.accepted] == ["https://punchng.com/a"]


def test_first_processed_wins_when_neither_has_image():
    a = _article("Lagos Marathon Draws Thousands", "https://punchng.com/a")
    b = _article("Lagos Marathon Draws Thousands of Runners", "https://thecable.ng/b")

    assert [x.url for x in dedupe([a, b]).accepted] == ["https://punchng.com/a"]
    assert [x.url for x in dedupe([b, a]).accepted] == ["https://thecable.ng/b"]


def test_replacement_keeps_original_position():
    a = _article("Lagos Marathon Draws Thousands", "https://punchng.com/a")
    c = _article("Tech Meetup Lagos Pitch Night", "https://techcabal.com/c", image="https://techcabal.com/c.jpg")
    b = _article("Lagos Marathon Draws Thousands of Runners", "https://thecable.ng/b", image="https://thecable.ng/b.jpg")

    state = dedupe([a, c, b])

    assert [x.url for x in state.accepted] == ["https://thecable.ng/b", "https://techcabal.com/c"]
    assert normalize_title(b.title) in state.seen_titles
    assert normalize_title(a.title) not in state.seen_titles


def test_same_url_is_dropped_before_title_matching():
    first = _article("Burna Boy Rocks Afronation", "https://a.test/1", source="Source A")
    second = _article("Burna Boy Rocks Afro Nation Festival", "https://a.test/1", image="https://a.test/1.jpg", source="Source B")

    state = dedupe([first, second])

    # same URL: the image on the second item does not matter
    assert len(state.accepted) == 1
    assert state.accepted[0].source == "Source A"
    assert state.accepted[0].image_url is None


def test_urls_already_in_store_are_skipped():
    state = DedupState(existing_in_store={"https://punchng.com/old"})

    dedupe([_article("Lagos Traffic Update On Third Mainland Bridge", "https://punchng.com/old")], state)

    assert state.accepted == []


def test_distinct_batch_is_accepted_in_order():
    titles = [
        "Lagos Marathon Draws Thousands",
        "Tech Meetup Lagos Pitch Night",
        "Felabration Returns To New Afrika Shrine",
        "Rooftop Lounge Opens In Victoria Island",
        "Lekki Toll Gate Traffic Gridlock Eases",
    ]
    items = [_article(t, f"https://punchng.com/{i}", image=f"https://punchng.com/{i}.jpg") for i, t in enumerate(titles)]

    state = dedupe(items, DedupState())

    assert [a.title for a in state.accepted] == titles
    assert state.seen_urls == {i.url for i in items}


def test_state_carries_across_calls():
    state = dedupe([_article("Lagos Marathon Draws Thousands", "https://punchng.com/a")])
    dedupe([_article("Lagos Marathon Draws Thousands of Runners", "https://guardian.ng/b")], state)

    assert len(state.accepted) == 1


def test_custom_threshold_is_respected():
    a = _article("Lagos Marathon Draws Thousands", "https://punchng.com/a")
    b = _article("Lagos Marathon Cancelled", "https://guardian.ng/b")

    # 2 shared / min(4, 3) = 0.67
    assert len(dedupe([a, b]).accepted) == 2
    assert len(dedupe([a, b], threshold=0.6).accepted) == 1
