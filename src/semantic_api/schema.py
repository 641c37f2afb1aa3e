"""
Request settings for the semantic graph API.

Each settings dataclass validates its ranges in __post_init__ and can be
built from a JSON request body (camelCase keys) with from_request().

  ClusterSettings      numClusters 2-20 (5), minClusterSize 2-50 (3),
                       similarityThreshold 0.3-0.95 (0.6), generateNames (true)
  GapAnalysisSettings  threshold 0.5-0.95 (0.7), limit 1-200 (50),
                       yearFrom / yearTo 1900-2100 (optional)
  SmartSearchSettings  query 1-1000 chars, threshold 0-1 (0.6),
                       limit 1-100 (20), clusterId (optional)
  NeighborSettings     threshold 0-1 (0.6), limit 1-100 (20)
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Mapping, Optional

from src.common.errors import ValidationError

MAX_QUERY_LENGTH = 1000


def _check_int(name: str, value: Any, low: int, high: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer, got {value!r}", field=name)
    if not low <= value <= high:
        raise ValidationError(f"{name} must be between {low} and {high}, got {value}", field=name)


def _check_float(name: str, value: Any, low: float, high: float) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be a number, got {value!r}", field=name)
    if not low <= value <= high:
        raise ValidationError(f"{name} must be between {low} and {high}, got {value}", field=name)


def _body(payload: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise ValidationError("Request body must be a JSON object")
    return payload


@dataclass
class ClusterSettings:
    """Settings for a clustering run."""
    num_clusters: int = 5
    min_cluster_size: int = 3
    similarity_threshold: float = 0.6
    generate_names: bool = True

    def __post_init__(self):
        _check_int('numClusters', self.num_clusters, 2, 20)
        _check_int('minClusterSize', self.min_cluster_size, 2, 50)
        _check_float('similarityThreshold', self.similarity_threshold, 0.3, 0.95)
        if not isinstance(self.generate_names, bool):
            raise ValidationError(
                f"generateNames must be a boolean, got {self.generate_names!r}",
                field='generateNames'
            )

    @classmethod
    def from_request(cls, payload: Optional[Mapping[str, Any]]) -> 'ClusterSettings':
        body = _body(payload)
        return cls(
            num_clusters=body.get('numClusters', 5),
            min_cluster_size=body.get('minClusterSize', 3),
            similarity_threshold=body.get('similarityThreshold', 0.6),
            generate_names=body.get('generateNames', True),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class GapAnalysisSettings:
    """Settings for a missing-citation gap scan."""
    threshold: float = 0.7
    limit: int = 50
    year_from: Optional[int] = None
    year_to: Optional[int] = None

    def __post_init__(self):
        _check_float('threshold', self.threshold, 0.5, 0.95)
        _check_int('limit', self.limit, 1, 200)
        if self.year_from is not None:
            _check_int('yearFrom', self.year_from, 1900, 2100)
        if self.year_to is not None:
            _check_int('yearTo', self.year_to, 1900, 2100)
        if self.year_from is not None and self.year_to is not None and self.year_from > self.year_to:
            raise ValidationError(
                f"yearFrom ({self.year_from}) must not be after yearTo ({self.year_to})",
                field='yearFrom'
            )

    @classmethod
    def from_request(cls, payload: Optional[Mapping[str, Any]]) -> 'GapAnalysisSettings':
        body = _body(payload)
        return cls(
            threshold=body.get('threshold', 0.7),
            limit=body.get('limit', 50),
            year_from=body.get('yearFrom'),
            year_to=body.get('yearTo'),
        )


@dataclass
class SmartSearchSettings:
    """Settings for a cluster-aware semantic search."""
    query: str
    threshold: float = 0.6
    limit: int = 20
    cluster_id: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.query, str) or not self.query.strip():
            raise ValidationError("query must be a non-empty string", field='query')
        if len(self.query) > MAX_QUERY_LENGTH:
            raise ValidationError(
                f"query must be at most {MAX_QUERY_LENGTH} characters, got {len(self.query)}",
                field='query'
            )
        _check_float('threshold', self.threshold, 0.0, 1.0)
        _check_int('limit', self.limit, 1, 100)
        if self.cluster_id is not None and not isinstance(self.cluster_id, str):
            raise ValidationError("clusterId must be a string", field='clusterId')

    @classmethod
    def from_request(cls, payload: Optional[Mapping[str, Any]]) -> 'SmartSearchSettings':
        body = _body(payload)
        return cls(
            query=body.get('query', ''),
            threshold=body.get('threshold', 0.6),
            limit=body.get('limit', 20),
            cluster_id=body.get('clusterId') or None,
        )


@dataclass
class NeighborSettings:
    """Settings for semantic neighbours of one article."""
    threshold: float = 0.6
    limit: int = 20

    def __post_init__(self):
        _check_float('threshold', self.threshold, 0.0, 1.0)
        _check_int('limit', self.limit, 1, 100)

    @classmethod
    def from_query_args(cls, args: Mapping[str, str]) -> 'NeighborSettings':
        """Build from URL query parameters (?threshold=0.7&limit=10)."""
        try:
            threshold = float(args['threshold']) if 'threshold' in args else 0.6
            limit = int(args['limit']) if 'limit' in args else 20
        except ValueError as e:
            raise ValidationError(f"Invalid query parameter: {e}") from e
        return cls(threshold=threshold, limit=limit)
