"""
Citation edge lookup derived from each record's citation identifier lists.
"""

from typing import Dict, Iterable, Optional, Protocol

from src.common.models import EmbeddingRecord


class CitationEdgeOracle(Protocol):
    def has_citation_edge(self, id_a: str, id_b: str) -> bool:
        ...


class CitationIndex:
    """
    Answers whether two articles cite each other in either direction.

    An edge exists if either record's citation identifier appears in the
    other's outbound (reference) or inbound (cited-by) list. Records
    without a citation identifier can only be linked through the other
    side's identifier.
    """

    def __init__(self, records: Iterable[EmbeddingRecord]):
        self._records: Dict[str, EmbeddingRecord] = {record.id: record for record in records}

    def get(self, article_id: str) -> Optional[EmbeddingRecord]:
        return self._records.get(article_id)

    def has_citation_edge(self, id_a: str, id_b: str) -> bool:
        a = self._records.get(id_a)
        b = self._records.get(id_b)
        if a is None or b is None:
            return False
        return _links(a, b) or _links(b, a)


def _links(source: EmbeddingRecord, target: EmbeddingRecord) -> bool:
    """True if source lists target as a reference or as a citing article."""
    if target.citation_id is None:
        return False
    return target.citation_id in source.reference_ids or target.citation_id in source.cited_by_ids
