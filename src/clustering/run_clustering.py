"""
Run semantic clustering for one scope from the command line.

Loads the scope's citation-graph embeddings, clusters them, generates
cluster metadata and replaces the scope's stored clusters, through the
same SemanticGraphService the HTTP API uses.

Usage:
    python3 -m src.clustering --scope-id <project-id> [--num-clusters 5]
        [--min-cluster-size 3] [--similarity-threshold 0.6] [--no-names]
        [--seed 42] [--dry-run] [--auto-prepare]

Environment Variables:
    GCP_PROJECT: Google Cloud project ID
    GCP_REGION: Google Cloud region (default: europe-west4)
    ARTICLES_COLLECTION, PROJECT_ARTICLES_COLLECTION, CLUSTERS_COLLECTION
    GOOGLE_APPLICATION_CREDENTIALS: Path to service account key
"""

import os
import sys
import logging
import argparse
from typing import Any, Dict

from src.common.errors import InsufficientDataError, SemanticAnalysisError

logger = logging.getLogger(__name__)


class ClusteringRun:
    """
    One clustering run over a scope.

    Args:
        scope_id: Project ID to cluster
        service: SemanticGraphService doing the work
        settings: Validated ClusterSettings (defaults if None)
        dry_run: If True, don't write to Firestore
    """

    def __init__(
        self,
        scope_id: str,
        service,
        settings=None,
        dry_run: bool = False
    ):
        self.scope_id = scope_id
        self.service = service
        self.settings = settings
        self.dry_run = dry_run

    def run(self) -> Dict[str, Any]:
        """Execute the full clustering pipeline."""
        logger.info("=" * 60)
        logger.info(f"Semantic clustering for scope {self.scope_id}")
        if self.dry_run:
            logger.info("DRY RUN - stored clusters will not be replaced")
        logger.info("=" * 60)

        response = self.service.create_clusters(
            self.scope_id, self.settings, dry_run=self.dry_run
        )
        stats = response['stats']

        logger.info("=" * 60)
        logger.info(f"✅ Clustering complete in {response['processing_time_sec']:.2f}s")
        logger.info(f"   Clusters: {stats['total_clusters']}")
        logger.info(f"   Unassigned articles: {len(response['unclustered'])}")
        logger.info(f"   Quality metrics: {response['quality']}")
        for cluster in response['clusters']:
            logger.info(
                f"   - {cluster.get('name_en') or '-'}: {cluster['size']} articles, "
                f"keywords={cluster.get('keywords')}"
            )
        logger.info("=" * 60)

        return {
            'clusters': stats['total_clusters'],
            'unassigned': len(response['unclustered']),
            'requested_k': stats['requested_k'],
            'effective_k': stats['effective_k'],
            'iterations': stats['iterations'],
            'converged': stats['converged'],
            'processing_time_sec': response['processing_time_sec'],
        }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Semantic clustering of a project citation graph'
    )
    parser.add_argument('--scope-id', required=True, help='Project ID to cluster')
    parser.add_argument('--num-clusters', type=int, default=5, help='Requested clusters (2-20)')
    parser.add_argument('--min-cluster-size', type=int, default=3, help='Minimum members (2-50)')
    parser.add_argument(
        '--similarity-threshold',
        type=float,
        default=0.6,
        help='Cosine floor for membership (0.3-0.95)'
    )
    parser.add_argument('--no-names', action='store_true', help='Skip LLM cluster naming')
    parser.add_argument('--seed', type=int, default=None, help='Random seed')
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Run without writing to Firestore (for testing)'
    )
    parser.add_argument(
        '--auto-prepare',
        action='store_true',
        help='Run default clustering plus gap analysis, best effort'
    )
    return parser


def main(argv=None):
    """Main entry point for command-line clustering."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    args = build_parser().parse_args(argv)

    if not os.getenv('GCP_PROJECT'):
        logger.error("GCP_PROJECT environment variable not set")
        sys.exit(1)

    if not os.getenv('GOOGLE_APPLICATION_CREDENTIALS'):
        logger.warning("GOOGLE_APPLICATION_CREDENTIALS not set, using default credentials")

    from src.semantic_api.schema import ClusterSettings
    from src.semantic_api.service import SemanticGraphService

    service = SemanticGraphService(random_state=args.seed)

    if args.auto_prepare:
        summary = service.auto_prepare(args.scope_id)
        logger.info(f"Auto-preparation summary: {summary}")
        return

    try:
        # Same ranges as the HTTP API
        settings = ClusterSettings(
            num_clusters=args.num_clusters,
            min_cluster_size=args.min_cluster_size,
            similarity_threshold=args.similarity_threshold,
            generate_names=not args.no_names,
        )

        ClusteringRun(
            scope_id=args.scope_id,
            service=service,
            settings=settings,
            dry_run=args.dry_run,
        ).run()
    except InsufficientDataError as e:
        logger.error(f"Not enough data to cluster: {e}")
        sys.exit(1)
    except SemanticAnalysisError as e:
        logger.error(f"Clustering failed: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Clustering failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
