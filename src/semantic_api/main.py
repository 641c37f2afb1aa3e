"""
Cloud Function for semantic graph analysis.

Function URL:
    https://europe-west4-{project}.cloudfunctions.net/semantic-graph

Routes:
    POST   /scopes/<scope_id>/clusters                      Run clustering (replaces existing)
    GET    /scopes/<scope_id>/clusters                      List clusters, largest first
    DELETE /scopes/<scope_id>/clusters                      Delete all clusters
    POST   /scopes/<scope_id>/gap-analysis                  Similar pairs without citations
    POST   /scopes/<scope_id>/search                        Cluster-aware semantic search
    GET    /scopes/<scope_id>/articles/<article_id>/neighbors

Example request (POST /scopes/p1/clusters):
    {"numClusters": 5, "minClusterSize": 3, "similarityThreshold": 0.6, "generateNames": true}

Errors:
    400 invalid settings or too few embeddings, 404 unknown route or article,
    405 wrong method, 503 embedding provider failure, 500 anything else
"""

import logging
from typing import Any, Dict, Tuple

import functions_framework
from flask import Request
from werkzeug.exceptions import MethodNotAllowed, NotFound
from werkzeug.routing import Map, Rule

from src.common.errors import (
    ArticleNotFoundError,
    ExternalServiceError,
    InsufficientDataError,
    ValidationError,
)
from .schema import ClusterSettings, GapAnalysisSettings, NeighborSettings, SmartSearchSettings
from .service import SemanticGraphService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

url_map = Map([
    Rule('/scopes/<scope_id>/clusters', methods=['POST'], endpoint='create_clusters'),
    Rule('/scopes/<scope_id>/clusters', methods=['GET'], endpoint='get_clusters'),
    Rule('/scopes/<scope_id>/clusters', methods=['DELETE'], endpoint='delete_clusters'),
    Rule('/scopes/<scope_id>/gap-analysis', methods=['POST'], endpoint='analyze_gaps'),
    Rule('/scopes/<scope_id>/search', methods=['POST'], endpoint='smart_search'),
    Rule(
        '/scopes/<scope_id>/articles/<article_id>/neighbors',
        methods=['GET'],
        endpoint='semantic_neighbors'
    ),
])

# Global service instance (survives across invocations)
_service = None


def get_service() -> SemanticGraphService:
    global _service

    if _service is None:
        logger.info("Initializing SemanticGraphService")
        _service = SemanticGraphService()

    return _service


def _dispatch(service: SemanticGraphService, endpoint: str, request: Request, args: Dict[str, str]):
    scope_id = args['scope_id']
    body = request.get_json(silent=True)

    if endpoint == 'create_clusters':
        return service.create_clusters(scope_id, ClusterSettings.from_request(body))
    if endpoint == 'get_clusters':
        return service.get_clusters(scope_id)
    if endpoint == 'delete_clusters':
        return service.delete_clusters(scope_id)
    if endpoint == 'analyze_gaps':
        return service.analyze_gaps(scope_id, GapAnalysisSettings.from_request(body))
    if endpoint == 'smart_search':
        if body is None:
            raise ValidationError("Request body must be JSON")
        return service.smart_search(scope_id, SmartSearchSettings.from_request(body))
    if endpoint == 'semantic_neighbors':
        settings = NeighborSettings.from_query_args(request.args)
        return service.semantic_neighbors(scope_id, args['article_id'], settings)

    raise NotFound()


@functions_framework.http
def semantic_graph(request: Request) -> Tuple[Dict[str, Any], int]:
    """
    Cloud Function HTTP handler for all semantic graph routes.

    Args:
        request: Flask request

    Returns:
        JSON response and status code
    """
    adapter = url_map.bind_to_environ(request.environ)

    try:
        endpoint, args = adapter.match()
    except MethodNotAllowed:
        return {'error': f'Method {request.method} not allowed'}, 405
    except NotFound:
        return {'error': f'Not found: {request.path}'}, 404

    logger.info(f"{request.method} {request.path} -> {endpoint}")

    try:
        return _dispatch(get_service(), endpoint, request, args), 200

    except ValidationError as e:
        logger.warning(f"Invalid request for {endpoint}: {e}")
        return {'error': str(e), 'field': e.field}, 400

    except InsufficientDataError as e:
        logger.warning(f"Insufficient data for {endpoint}: {e}")
        return {'error': str(e), 'found': e.found, 'required': e.required}, 400

    except ArticleNotFoundError as e:
        return {'error': str(e)}, 404

    except ExternalServiceError as e:
        logger.error(f"External service failure in {endpoint}: {e}")
        return {'error': 'External service unavailable', 'service': e.service}, 503

    except Exception as e:
        logger.error(f"{endpoint} failed: {e}", exc_info=True)
        return {'error': 'Internal server error'}, 500
