#!/usr/bin/env python3
"""
Chunk Similarity - Compare a job vector against stored CV chunks.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

logger = logging.getLogger(__name__)


@dataclass
class ChunkSimilarity:
    max_similarity: float = 0.0
    average_similarity: float = 0.0
    chunks: List[Dict[str, Any]] = field(default_factory=list)


def calculate_chunk_similarity(
    repo,
    application_id: int,
    job_vector: Sequence[float],
    top_k: int = 3,
) -> ChunkSimilarity:
    """
    Score the top-k CV chunks closest to the job vector.

    Args:
        repo: EmbeddingRepository
        application_id: Application whose chunks are searched
        job_vector: Job description embedding
        top_k: Number of nearest chunks to consider

    Returns:
        ChunkSimilarity; all zeros when the application has no chunks
    """
    matches = repo.find_top_chunks(application_id, list(job_vector), top_k=top_k)
    if not matches:
        logger.debug(f"No chunks found for application {application_id}")
        return ChunkSimilarity()

    similarities = [similarity for _, similarity in matches]
    chunks = [
        {
            'chunk_index': chunk.chunk_index,
            'similarity': round(similarity, 4),
            'text': chunk.chunk_text,
        }
        for chunk, similarity in matches
    ]
    return ChunkSimilarity(
        max_similarity=max(similarities),
        average_similarity=sum(similarities) / len(similarities),
        chunks=chunks,
    )


def find_similar_chunks(repo, query_vector: Sequence[float], job_posting_id=None, limit: int = 10, threshold: float = 0.7) -> List[Dict[str, Any]]:
    """Best matching CV excerpts across applications, as plain dicts."""
    matches = repo.find_similar_chunks(
        list(query_vector), job_posting_id=job_posting_id, limit=limit, threshold=threshold
    )
    return [
        {
            'application_id': chunk.application_id,
            'chunk_index': chunk.chunk_index,
            'similarity': round(similarity, 4),
            'text': chunk.chunk_text,
        }
        for chunk, similarity in matches
    ]
