"""
Cluster metadata generation.

Turns a clustering partition into Cluster records ready to persist:
- Central (most representative) article and each member's similarity to it
- Keywords from member titles
- Names via the LLM naming service, with a local default on failure
- Display colour
"""

import logging
from typing import Dict, List, Optional, Sequence

from src.common.errors import ExternalServiceError
from src.common.models import Cluster, ClusterName, ClusterResult, EmbeddingRecord
from .centrality import find_central_member
from .keywords import extract_keywords
from .vector_math import cosine_similarity

logger = logging.getLogger(__name__)

CLUSTER_COLORS = [
    "#6366f1",  # Indigo
    "#22c55e",  # Green
    "#f59e0b",  # Amber
    "#ec4899",  # Pink
    "#06b6d4",  # Cyan
    "#8b5cf6",  # Violet
    "#f97316",  # Orange
    "#14b8a6",  # Teal
    "#ef4444",  # Red
    "#84cc16",  # Lime
    "#a855f7",  # Purple
    "#3b82f6",  # Blue
]

NAMING_SAMPLE_SIZE = 10


def default_cluster_name(position: int) -> ClusterName:
    """Fallback name for the cluster at 1-based position."""
    return ClusterName(native=f"Кластер {position}", en=f"Cluster {position}")


class ClusterMetadataGenerator:
    """
    Enriches engine clusters with central article, keywords, name and colour.

    Args:
        namer: Object with name_cluster(titles) -> ClusterName; None disables naming
        generate_names: Whether to call the namer at all (default: True)
    """

    def __init__(self, namer=None, generate_names: bool = True):
        self.namer = namer
        self.generate_names = generate_names and namer is not None

    def generate(
        self,
        result: ClusterResult,
        records: Sequence[EmbeddingRecord],
        scope_id: Optional[str] = None
    ) -> List[Cluster]:
        """
        Generate metadata for all clusters of a run.

        Args:
            result: Clustering output
            records: The snapshot the run clustered
            scope_id: Scope the clusters belong to

        Returns:
            The same Cluster objects, enriched in place, in engine order
        """
        by_id: Dict[str, EmbeddingRecord] = {record.id: record for record in records}

        logger.info(f"Generating metadata for {len(result.clusters)} clusters")

        for position, cluster in enumerate(result.clusters):
            members = [by_id[member_id] for member_id in cluster.member_ids]
            self._generate_cluster_metadata(position, cluster, members, scope_id)

        return result.clusters

    def _generate_cluster_metadata(
        self,
        position: int,
        cluster: Cluster,
        members: List[EmbeddingRecord],
        scope_id: Optional[str]
    ) -> None:
        cluster.scope_id = scope_id
        cluster.color = CLUSTER_COLORS[position % len(CLUSTER_COLORS)]

        central = find_central_member(members)
        cluster.central_id = central.record.id if central else None
        cluster.similarity_to_center = {
            member.id: cosine_similarity(member.vector, central.record.vector) if central else 0.0
            for member in members
        }

        titles = [member.title for member in members if member.title]
        cluster.keywords = extract_keywords(titles)
        cluster.name = self._name_cluster(position, titles)

        logger.info(
            f"  Cluster {position + 1}: {cluster.size} members, "
            f"central={cluster.central_id}, keywords={cluster.keywords}"
        )

    def _name_cluster(self, position: int, titles: List[str]) -> ClusterName:
        """Ask the naming service; on any failure log and use the default name."""
        fallback = default_cluster_name(position + 1)

        if not self.generate_names or not titles:
            return fallback

        try:
            return self.namer.name_cluster(titles[:NAMING_SAMPLE_SIZE])
        except ExternalServiceError as e:
            logger.warning(f"Failed to generate cluster name: {e}")
        except Exception as e:
            logger.warning(f"Failed to generate cluster name (unexpected error): {e}")

        return fallback
