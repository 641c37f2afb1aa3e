"""
Data model for citation-graph semantic analysis.

EmbeddingRecord is the per-invocation snapshot row fetched from the
embedding store. Cluster is the persisted output of a clustering run.
GapCandidate and SearchHit are transient, recomputed per request.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, List, Optional

import numpy as np

from .errors import ValidationError


def _utc_now() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


@dataclass(eq=False)
class EmbeddingRecord:
    """
    One article embedding with the metadata the engine needs.

    Attributes:
        id: Article ID
        vector: Embedding vector (D dimensions, fixed per deployment)
        title: Article title (may be empty)
        abstract: Article abstract (may be empty)
        year: Publication year, if known
        citation_id: Identifier used in citation lists (e.g. PMID)
        reference_ids: Citation identifiers this article cites
        cited_by_ids: Citation identifiers of articles citing this one
    """

    id: str
    vector: np.ndarray
    title: str = ''
    abstract: str = ''
    year: Optional[int] = None
    citation_id: Optional[str] = None
    reference_ids: FrozenSet[str] = frozenset()
    cited_by_ids: FrozenSet[str] = frozenset()

    def __post_init__(self):
        self.vector = np.asarray(self.vector, dtype=np.float64)
        if self.vector.ndim != 1:
            raise ValidationError(
                f"Embedding for {self.id} must be 1D, got shape {self.vector.shape}",
                field='vector',
            )
        self.title = self.title or ''
        self.abstract = self.abstract or ''
        self.reference_ids = frozenset(self.reference_ids or ())
        self.cited_by_ids = frozenset(self.cited_by_ids or ())

    @property
    def dimension(self) -> int:
        return int(self.vector.shape[0])


@dataclass(frozen=True)
class ClusterName:
    """Cluster display name in the deployment's native language and English."""

    native: str
    en: str

    def to_dict(self) -> Dict[str, str]:
        return {'native': self.native, 'en': self.en}


@dataclass(eq=False)
class Cluster:
    """
    A group of semantically related articles within one scope.

    Members keep engine order (input order of the snapshot). The centroid is
    the arithmetic mean of member vectors.
    """

    member_ids: List[str]
    centroid: np.ndarray
    avg_internal_similarity: float
    id: Optional[str] = None
    scope_id: Optional[str] = None
    central_id: Optional[str] = None
    keywords: List[str] = field(default_factory=list)
    name: Optional[ClusterName] = None
    color: Optional[str] = None
    similarity_to_center: Dict[str, float] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self):
        if not self.member_ids:
            raise ValidationError("Cluster must have at least one member", field='member_ids')
        if len(set(self.member_ids)) != len(self.member_ids):
            raise ValidationError("Cluster member IDs must be unique", field='member_ids')
        self.centroid = np.asarray(self.centroid, dtype=np.float64)

    @property
    def size(self) -> int:
        return len(self.member_ids)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to a plain dictionary for storage and JSON responses.

        Returns:
            Dictionary with all fields serialized (centroid as list)
        """
        return {
            'id': self.id,
            'scope_id': self.scope_id,
            'member_ids': list(self.member_ids),
            'size': self.size,
            'centroid': self.centroid.tolist(),
            'avg_internal_similarity': float(self.avg_internal_similarity),
            'central_id': self.central_id,
            'keywords': list(self.keywords),
            'name': self.name.native if self.name else None,
            'name_en': self.name.en if self.name else None,
            'color': self.color,
            'similarity_to_center': {
                member_id: float(sim) for member_id, sim in self.similarity_to_center.items()
            },
            'created_at': self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Cluster':
        """Rebuild a Cluster from its stored dictionary form."""
        name = None
        if data.get('name') or data.get('name_en'):
            name = ClusterName(
                native=data.get('name') or data.get('name_en'),
                en=data.get('name_en') or data.get('name'),
            )

        created_at = data.get('created_at')
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        elif not isinstance(created_at, datetime):
            created_at = _utc_now()

        return cls(
            id=data.get('id'),
            scope_id=data.get('scope_id'),
            member_ids=list(data.get('member_ids', [])),
            centroid=data.get('centroid', []),
            avg_internal_similarity=float(data.get('avg_internal_similarity', 0.0)),
            central_id=data.get('central_id'),
            keywords=list(data.get('keywords', [])),
            name=name,
            color=data.get('color'),
            similarity_to_center=dict(data.get('similarity_to_center', {})),
            created_at=created_at,
        )


@dataclass
class ClusterResult:
    """
    Output of one clustering run.

    Attributes:
        clusters: Surviving clusters (no IDs assigned yet)
        unassigned_ids: Record IDs not in any surviving cluster, in input order
        requested_k: Number of clusters the caller asked for
        effective_k: Number of clusters after clamping to what the data supports
        n_seeds: Number of centroids seeding actually produced
        iterations: Assignment iterations executed
        converged: Whether the assignment stabilised before max_iterations
    """

    clusters: List[Cluster]
    unassigned_ids: List[str]
    requested_k: int
    effective_k: int
    n_seeds: int = 0
    iterations: int = 0
    converged: bool = False

    @property
    def k_clamped(self) -> bool:
        return self.effective_k < self.requested_k


@dataclass
class GapCandidate:
    """A pair of similar articles with no direct citation between them."""

    id_a: str
    id_b: str
    similarity: float
    reason: str
    title_a: str = ''
    title_b: str = ''
    year_a: Optional[int] = None
    year_b: Optional[int] = None

    def __post_init__(self):
        if self.id_a == self.id_b:
            raise ValidationError("Gap candidate must reference two different articles")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'article1': {'id': self.id_a, 'title': self.title_a, 'year': self.year_a},
            'article2': {'id': self.id_b, 'title': self.title_b, 'year': self.year_b},
            'similarity': float(self.similarity),
            'reason': self.reason,
        }


@dataclass
class SearchHit:
    """One ranked article from a semantic search."""

    id: str
    similarity: float
    cluster_id: Optional[str] = None
    title: str = ''
    year: Optional[int] = None
    cluster_name: Optional[str] = None
    cluster_color: Optional[str] = None
    has_direct_citation: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'title': self.title,
            'year': self.year,
            'similarity': float(self.similarity),
            'cluster_id': self.cluster_id,
            'cluster_name': self.cluster_name,
            'cluster_color': self.cluster_color,
        }
        if self.has_direct_citation is not None:
            data['has_direct_citation'] = self.has_direct_citation
        return data


@dataclass
class SearchGroup:
    """Search hits belonging to one cluster, in similarity order."""

    cluster_id: str
    hits: List[SearchHit]
    name: Optional[str] = None
    color: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'cluster': {'id': self.cluster_id, 'name': self.name, 'color': self.color},
            'articles': [hit.to_dict() for hit in self.hits],
        }


@dataclass
class SearchResult:
    """Ranked hits plus the same hits grouped by cluster."""

    hits: List[SearchHit]
    groups: List[SearchGroup]
    unclustered: List[SearchHit]

    @property
    def total_found(self) -> int:
        return len(self.hits)
