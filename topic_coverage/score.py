"""
Scoring module: cosine similarity and per-query best-chunk matching.
"""
import time
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Tuple, Union, Callable

import numpy as np

from .chunk import ContentChunker
from .categorize import QueryCategorizer
from .core.errors import DimensionMismatchError, EmbeddingError
from .core.interfaces import EmbeddingProvider
from .core.models import ContentChunk, EmbeddingVector, QueryMatch
from .utils import chunk_list, logger

VectorLike = Union[EmbeddingVector, Sequence[float], np.ndarray]

CONTEXT_CHARS = 200
FAILED_QUERY_CATEGORY = 'general'


def _as_array(vector: VectorLike) -> np.ndarray:
    if isinstance(vector, EmbeddingVector):
        vector = vector.values
    return np.asarray(vector, dtype=float)


def cosine_similarity(a: VectorLike, b: VectorLike) -> float:
    """Cosine of the angle between two equal-length vectors.

    Returns exactly 0.0 when either vector has zero norm. The result is
    clipped to [-1, 1] to absorb floating point drift.
    """
    va = _as_array(a)
    vb = _as_array(b)
    if va.shape != vb.shape:
        logger.error(f"Dimension mismatch comparing vectors of length {va.size} and {vb.size}")
        raise DimensionMismatchError(va.size, vb.size)

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    similarity = float(np.dot(va, vb) / (norm_a * norm_b))
    return float(np.clip(similarity, -1.0, 1.0))


class ContentSimilarityAnalyzer:
    """Match each query to the best-scoring chunk of a document."""

    def __init__(self, embedding_provider: EmbeddingProvider,
                 chunker: Optional[ContentChunker] = None,
                 categorizer: Optional[QueryCategorizer] = None,
                 threshold: float = 0.7,
                 batch_size: int = 5,
                 batch_delay: float = 0.5,
                 sleep: Callable[[float], None] = time.sleep):
        self.embedding_provider = embedding_provider
        self.chunker = chunker or ContentChunker()
        self.categorizer = categorizer or QueryCategorizer()
        self.threshold = threshold
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.sleep = sleep

    def analyze(self, text: str, queries: List[str], threshold: Optional[float] = None,
                require_embeddings: bool = False) -> List[QueryMatch]:
        """Score every query against the document text.

        Returns one QueryMatch per query, sorted by descending similarity.
        A failed query embedding yields a zero-similarity 'general' record.
        With require_embeddings, raises EmbeddingError when no chunk could be
        embedded at all.
        """
        threshold = self.threshold if threshold is None else threshold

        chunks = self.chunker.chunk(text)
        embedded = self._embed_chunks(chunks)
        logger.info(f"Embedded {len(embedded)}/{len(chunks)} chunks")

        if require_embeddings and not embedded:
            raise EmbeddingError("No content chunks could be embedded")

        results: List[QueryMatch] = []
        batches = chunk_list(list(queries), self.batch_size)
        for batch_index, batch in enumerate(batches):
            # executor.map yields in input order regardless of completion order
            with ThreadPoolExecutor(max_workers=len(batch)) as executor:
                batch_results = list(executor.map(
                    lambda query: self._match_query(query, embedded, threshold), batch
                ))
            results.extend(batch_results)

            if batch_index < len(batches) - 1:
                self.sleep(self.batch_delay)

        logger.info(f"Completed similarity analysis for {len(results)} queries")
        results.sort(key=lambda match: match.similarity, reverse=True)
        return results

    def _embed_chunks(self, chunks: List[ContentChunk]) -> List[Tuple[ContentChunk, EmbeddingVector]]:
        """Embed chunks concurrently, discarding the ones that fail."""
        if not chunks:
            return []

        with ThreadPoolExecutor(max_workers=min(self.batch_size, len(chunks))) as executor:
            vectors = list(executor.map(self._embed_chunk, chunks))

        return [(chunk, vector) for chunk, vector in zip(chunks, vectors) if vector is not None]

    def _embed_chunk(self, chunk: ContentChunk) -> Optional[EmbeddingVector]:
        try:
            return self.embedding_provider.embed(chunk.text)
        except EmbeddingError as e:
            logger.warning(f"Error generating embedding for chunk {chunk.index}: {e}")
            return None

    def _match_query(self, query: str,
                     embedded: List[Tuple[ContentChunk, EmbeddingVector]],
                     threshold: float) -> QueryMatch:
        try:
            query_vector = self.embedding_provider.embed(query)
        except EmbeddingError as e:
            logger.warning(f"Error processing query '{query}': {e}")
            return QueryMatch(query=query, similarity=0.0, category=FAILED_QUERY_CATEGORY,
                              matched=False, context="", best_chunk_index=None)

        best_similarity = 0.0
        best_chunk: Optional[ContentChunk] = None
        for chunk, chunk_vector in embedded:
            similarity = cosine_similarity(query_vector, chunk_vector)
            if similarity > best_similarity:
                best_similarity = similarity
                best_chunk = chunk

        return QueryMatch(
            query=query,
            similarity=best_similarity,
            category=self.categorizer.categorize(query),
            matched=best_similarity >= threshold,
            context=best_chunk.text[:CONTEXT_CHARS] if best_chunk else "",
            best_chunk_index=best_chunk.index if best_chunk else None,
        )
