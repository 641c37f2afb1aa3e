"""
Tests for missing-citation gap detection.
"""

import pytest

from src.analysis.citations import CitationIndex
from src.analysis.gap_detector import GapDetector, gap_reason
from src.common.errors import ValidationError
from src.common.models import EmbeddingRecord


def make_record(article_id, vector, year=None, pmid=None, references=(), cited_by=()):
    return EmbeddingRecord(
        id=article_id,
        vector=vector,
        title=f"Title {article_id}",
        year=year,
        citation_id=pmid,
        reference_ids=frozenset(references),
        cited_by_ids=frozenset(cited_by),
    )


@pytest.fixture
def corpus():
    return [
        make_record('a', [1.0, 0.0, 0.0], year=2020, pmid='100'),
        make_record('b', [0.95, 0.1, 0.0], year=2021, pmid='200', references=['100']),
        make_record('c', [0.9, 0.2, 0.0], year=2010, pmid='300'),
        make_record('d', [0.0, 0.0, 1.0], year=2020, pmid='400'),
    ]


class TestCitationIndex:

    def test_reference_edge_both_directions(self, corpus):
        index = CitationIndex(corpus)
        assert index.has_citation_edge('a', 'b')
        assert index.has_citation_edge('b', 'a')

    def test_cited_by_edge(self):
        records = [
            make_record('x', [1.0, 0.0], pmid='1', cited_by=['2']),
            make_record('y', [1.0, 0.0], pmid='2'),
        ]
        assert CitationIndex(records).has_citation_edge('y', 'x')

    def test_no_edge(self, corpus):
        assert not CitationIndex(corpus).has_citation_edge('a', 'c')

    def test_unknown_article(self, corpus):
        assert not CitationIndex(corpus).has_citation_edge('a', 'missing')


class TestGapDetector:

    def test_cited_pairs_never_reported(self, corpus):
        index = CitationIndex(corpus)
        gaps = GapDetector(threshold=0.7).detect(corpus, index)

        for gap in gaps:
            assert not index.has_citation_edge(gap.id_a, gap.id_b)
            assert not index.has_citation_edge(gap.id_b, gap.id_a)
        assert ('a', 'b') not in {(g.id_a, g.id_b) for g in gaps}

    def test_pairs_sorted_descending(self, corpus):
        gaps = GapDetector(threshold=0.7).detect(corpus)

        assert [(g.id_a, g.id_b) for g in gaps] == [('b', 'c'), ('a', 'c')]
        sims = [g.similarity for g in gaps]
        assert sims == sorted(sims, reverse=True)
        assert all(s >= 0.7 for s in sims)

    def test_limit(self, corpus):
        gaps = GapDetector(threshold=0.7, limit=1).detect(corpus)
        assert len(gaps) == 1

    def test_year_range_unknown_year_passes(self):
        records = [
            make_record('old', [1.0, 0.0], year=1990),
            make_record('new', [1.0, 0.05], year=2022),
            make_record('undated', [1.0, 0.1]),
        ]

        gaps = GapDetector(threshold=0.7, year_from=2000).detect(records)

        assert [(g.id_a, g.id_b) for g in gaps] == [('new', 'undated')]

    def test_fewer_than_two_records(self):
        assert GapDetector().detect([make_record('a', [1.0])]) == []

    def test_invalid_settings(self):
        with pytest.raises(ValidationError):
            GapDetector(limit=0)
        with pytest.raises(ValidationError):
            GapDetector(year_from=2020, year_to=2010)

    def test_gap_carries_titles_and_years(self, corpus):
        gap = GapDetector(threshold=0.7).detect(corpus)[0]
        data = gap.to_dict()

        assert data['article1'] == {'id': 'b', 'title': 'Title b', 'year': 2021}
        assert data['article2']['year'] == 2010
        assert 'different periods' in data['reason']


class TestGapReason:

    def test_contemporary(self):
        assert gap_reason(0.912, 2020, 2021).startswith("High similarity (91%)")

    def test_small_gap(self):
        assert "small time gap" in gap_reason(0.8, 2015, 2020)

    def test_cross_era(self):
        assert "different periods" in gap_reason(0.8, 2000, 2020)

    def test_unknown_year(self):
        assert gap_reason(0.756, None, 2020) == "Semantic similarity 76% without a direct citation"
