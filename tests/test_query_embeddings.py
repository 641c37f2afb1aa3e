"""
Tests for query embedding generation.
"""

import threading
import unittest
from unittest.mock import MagicMock, Mock, patch

from google.api_core.exceptions import InvalidArgument, ResourceExhausted

from src.common.errors import ExternalServiceError, ValidationError
from src.embed.query_embeddings import MAX_TEXT_LENGTH, QueryEmbeddingService


def embedding_response(values):
    return [Mock(values=values)]


class TestQueryEmbeddingService(unittest.TestCase):

    def setUp(self):
        self.model = MagicMock()
        self.service = QueryEmbeddingService(model=self.model, dimensions=3, timeout=5)

    def test_embed_returns_vector(self):
        self.model.get_embeddings.return_value = embedding_response([0.1, 0.2, 0.3])

        vector = self.service.embed("  tumour microenvironment  ")

        self.assertEqual(vector, [0.1, 0.2, 0.3])
        self.model.get_embeddings.assert_called_once_with(
            ["tumour microenvironment"], output_dimensionality=3
        )

    def test_long_text_truncated(self):
        self.model.get_embeddings.return_value = embedding_response([1.0])

        self.service.embed("x" * (MAX_TEXT_LENGTH + 500))

        sent = self.model.get_embeddings.call_args[0][0][0]
        self.assertEqual(len(sent), MAX_TEXT_LENGTH)

    def test_empty_text_rejected(self):
        with self.assertRaises(ValidationError):
            self.service.embed("   ")
        self.model.get_embeddings.assert_not_called()

    @patch('src.embed.query_embeddings.time.sleep')
    def test_retries_rate_limit(self, mock_sleep):
        self.model.get_embeddings.side_effect = [
            ResourceExhausted("quota"),
            embedding_response([0.5]),
        ]

        self.assertEqual(self.service.embed("query"), [0.5])
        self.assertEqual(self.model.get_embeddings.call_count, 2)
        mock_sleep.assert_called_once_with(1)

    @patch('src.embed.query_embeddings.time.sleep')
    def test_gives_up_after_max_retries(self, mock_sleep):
        self.model.get_embeddings.side_effect = ResourceExhausted("quota")

        with self.assertRaises(ExternalServiceError) as ctx:
            self.service.embed("query")

        self.assertEqual(ctx.exception.service, 'query-embedding')
        self.assertEqual(self.model.get_embeddings.call_count, 3)

    def test_non_retryable_error(self):
        self.model.get_embeddings.side_effect = InvalidArgument("bad input")

        with self.assertRaises(ExternalServiceError):
            self.service.embed("query")
        self.assertEqual(self.model.get_embeddings.call_count, 1)

    def test_timeout(self):
        release = threading.Event()
        self.model.get_embeddings.side_effect = lambda *args, **kwargs: release.wait(5)
        service = QueryEmbeddingService(model=self.model, dimensions=3, timeout=0.05)

        try:
            with self.assertRaises(ExternalServiceError):
                service.embed("slow query")
        finally:
            release.set()

    def test_timed_out_calls_do_not_delay_later_queries(self):
        release = threading.Event()

        def get_embeddings(texts, output_dimensionality):
            if texts[0].startswith("slow"):
                release.wait(5)
            return embedding_response([0.5, 0.5, 0.0])

        self.model.get_embeddings.side_effect = get_embeddings
        service = QueryEmbeddingService(model=self.model, dimensions=3, timeout=0.2)

        try:
            for query in ("slow query 1", "slow query 2"):
                with self.assertRaises(ExternalServiceError):
                    service.embed(query)
            self.assertEqual(service.embed("fast query"), [0.5, 0.5, 0.0])
        finally:
            release.set()


if __name__ == '__main__':
    unittest.main()
