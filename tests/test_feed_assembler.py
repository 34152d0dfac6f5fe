"""Ranking shapes of the general, category/tag and category-news feeds."""

import json
from datetime import timedelta

import pytest

from conftest import NOW, FixedScorer, make_item, newest_first
from newsdesk.tools.freshness import FreshnessClassifier
from newsdesk.workflows.feed import FeedAssembler


def assembler_for(scores):
    return FeedAssembler(FixedScorer(scores), FreshnessClassifier(threshold=timedelta(hours=36), decay=0.3))


def ids(articles):
    return [a.id for a in articles]


# General feed

def test_fresh_item_leads_before_ranked_backfill():
    items = newest_first([
        make_item("A", 1),
        make_item("B", 48),
        make_item("C", 50),
        make_item("D", 60),
    ])
    assembler = assembler_for({"A": 10, "B": 10, "C": 100, "D": 50})

    result = assembler.general(items, NOW, limit=10)

    assert ids(result.articles) == ["A", "C", "D", "B"]
    by_id = {a.id: a for a in result.articles}
    assert by_id["A"].score == 10 and by_id["A"].is_fresh
    assert by_id["B"].score == pytest.approx(3.0) and not by_id["B"].is_fresh
    assert result.meta == {"total": 4, "freshCount": 1, "latestInTop": 1}


def test_top_slice_takes_two_newest_fresh_items():
    fresh = [make_item(f"F{i}", i + 1) for i in range(3)]
    stale = [make_item(f"S{i}", 40 + i) for i in range(6)]
    scores = {f"F{i}": 1 for i in range(3)}
    scores.update({f"S{i}": 100 - 10 * i for i in range(6)})

    result = assembler_for(scores).general(newest_first(fresh + stale), NOW, limit=20)

    assert ids(result.articles)[:6] == ["F0", "F1", "S0", "S1", "S2", "S3"]
    assert ids(result.articles)[6:] == ["S4", "S5", "F2"]
    assert result.meta["latestInTop"] == 2
    assert result.meta["freshCount"] == 3


def test_general_output_length_and_uniqueness():
    items = newest_first([make_item(f"I{i}", i * 7) for i in range(15)])
    assembler = assembler_for({f"I{i}": i for i in range(15)})

    for limit in (1, 6, 10, 15, 40):
        result = assembler.general(items, NOW, limit=limit)
        assert len(result.articles) == min(limit, len(items))
        assert len(set(ids(result.articles))) == len(result.articles)


def test_general_with_no_fresh_items_is_pure_relevance():
    items = newest_first([make_item(f"S{i}", 40 + i) for i in range(4)])
    result = assembler_for({"S0": 1, "S1": 4, "S2": 3, "S3": 2}).general(items, NOW)
    assert ids(result.articles) == ["S1", "S2", "S3", "S0"]
    assert result.meta["latestInTop"] == 0


def test_general_on_empty_candidates():
    result = assembler_for({}).general([], NOW)
    assert result.articles == []
    assert result.meta == {"total": 0, "freshCount": 0, "latestInTop": 0}


def test_assembly_is_idempotent_for_same_now():
    items = newest_first([make_item(f"I{i}", i * 5, tags=["x"]) for i in range(12)])
    assembler = assembler_for({f"I{i}": (i * 7) % 5 for i in range(12)})

    first = json.dumps(assembler.general(items, NOW).to_payload(), sort_keys=True)
    second = json.dumps(assembler.general(items, NOW).to_payload(), sort_keys=True)
    assert first == second

    first = json.dumps(assembler.blended(items, NOW).to_payload(), sort_keys=True)
    second = json.dumps(assembler.blended(items, NOW).to_payload(), sort_keys=True)
    assert first == second


def test_payload_uses_wire_field_names():
    payload = assembler_for({"A": 2}).general([make_item("A", 1)], NOW).to_payload()
    article = payload["articles"][0]
    assert article["isFresh"] is True
    assert article["score"] == 2
    assert "isHeadline" in article and "isLive" in article


# Category / tag feed

@pytest.fixture
def mixed_items():
    fresh = [make_item(f"f{i}", i + 1) for i in range(10)]
    stale = [make_item(f"s{j}", 40 + j) for j in range(30)]
    scores = {f"f{i}": i for i in range(10)}
    scores.update({f"s{j}": 100 - j for j in range(30)})
    return newest_first(fresh + stale), scores


def test_first_six_picks_fresh_and_ranked_then_orders_by_date(mixed_items):
    items, scores = mixed_items
    result = assembler_for(scores).blended(items, NOW, limit=30, selector=("category", "sports"))

    first_six = result.articles[:6]
    assert ids(first_six) == ["f0", "f1", "f2", "s0", "s1", "s2"]
    dates = [a.published_at for a in first_six]
    assert dates == sorted(dates, reverse=True)


def test_mixed_block_is_ordered_by_score(mixed_items):
    items, scores = mixed_items
    result = assembler_for(scores).blended(items, NOW, limit=30)

    mixed = result.articles[6:]
    assert ids(mixed) == [f"s{j}" for j in range(3, 13)] + [f"f{i}" for i in range(9, 2, -1)]
    mixed_scores = [a.score for a in mixed]
    assert mixed_scores == sorted(mixed_scores, reverse=True)
    assert len(set(ids(result.articles))) == len(result.articles)


def test_blended_meta_shape(mixed_items):
    items, scores = mixed_items
    result = assembler_for(scores).blended(items, NOW, limit=30, selector=("category", "sports"))

    assert result.meta == {
        "category": "sports",
        "total": 40,
        "freshCount": 10,
        "sections": {
            "firstSix": {"latest": 3, "ranked": 3},
            "mixedSection": {"latest": 8, "ranked": 10, "ratio": "45:55"},
            "remaining": {"type": "latestOnly", "count": 0},
        },
        "freshnessThreshold": "36 hours",
    }


def test_tag_selector_is_reported():
    result = assembler_for({}).blended([make_item("a", 1)], NOW, selector=("tag", "football"))
    assert result.meta["tag"] == "football"
    assert "category" not in result.meta


@pytest.fixture
def all_fresh_items():
    return newest_first([make_item(f"f{i:02d}", 0.5 * i + 0.1) for i in range(40)])


def test_remainder_fills_with_unused_fresh_items(all_fresh_items):
    result = assembler_for({}).blended(all_fresh_items, NOW, limit=30)

    assert ids(result.articles) == [f"f{i:02d}" for i in range(30)]
    assert result.meta["sections"]["remaining"]["count"] == 6
    assert result.meta["sections"]["firstSix"] == {"latest": 3, "ranked": 3}


def test_remainder_respects_limit_beyond_mixed_section(all_fresh_items):
    result = assembler_for({}).blended(all_fresh_items, NOW, limit=26)
    assert len(result.articles) == 26
    assert result.meta["sections"]["remaining"]["count"] == 2


def test_small_limit_gets_no_remainder(all_fresh_items):
    result = assembler_for({}).blended(all_fresh_items, NOW, limit=10)
    assert len(result.articles) == 10
    assert result.meta["sections"]["remaining"]["count"] == 0


def test_stale_items_outside_sections_are_dropped():
    items = newest_first([make_item(f"s{j:02d}", 40 + j) for j in range(30)])
    result = assembler_for({f"s{j:02d}": 30 - j for j in range(30)}).blended(items, NOW, limit=30)
    # 3 ranked in the first six + 10 ranked in the mixed block
    assert len(result.articles) == 13
    assert result.meta["sections"]["firstSix"] == {"latest": 0, "ranked": 3}


# Category news

def test_category_news_paginates_over_score_order():
    items = newest_first([make_item(f"n{i}", i + 1) for i in range(5)])
    assembler = assembler_for({"n0": 1, "n1": 5, "n2": 3, "n3": 4, "n4": 2})

    first = assembler.category_news(items, NOW, "politics", page=1, limit=2)
    second = assembler.category_news(items, NOW, "politics", page=2, limit=2)
    last = assembler.category_news(items, NOW, "politics", page=3, limit=2)

    assert ids(first.articles) == ["n1", "n3"]
    assert ids(second.articles) == ["n2", "n4"]
    assert ids(last.articles) == ["n0"]
    assert first.meta == {
        "category": "politics",
        "total": 5,
        "page": 1,
        "limit": 2,
        "totalPages": 3,
        "freshCount": 5,
    }


def test_category_news_page_past_the_end_is_empty():
    items = [make_item("n0", 1)]
    result = assembler_for({}).category_news(items, NOW, "politics", page=4, limit=10)
    assert result.articles == []
    assert result.meta["total"] == 1
