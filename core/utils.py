import logging
import numpy as np

logger = logging.getLogger(__name__)


def cosine_similarity_from_distance(distance: float) -> float:
    """Convert pgvector cosine distance to cosine similarity, clipped to [0, 1].

    pgvector cosine_distance returns values in range [0, 2], so similarity
    can theoretically be in range [-1, 1]. Negative similarity is treated as
    no match.

    Args:
        distance: Cosine distance from pgvector

    Returns:
        Cosine similarity in range [0, 1]
    """
    if distance is None:
        return 0.0
    similarity = 1.0 - float(distance)
    if not (0.0 <= similarity <= 1.0):
        logger.warning(f"Similarity out of range: {similarity}, clipping to [0, 1]")
        return max(0.0, min(1.0, similarity))
    return similarity


def row_normalize(matrix: np.ndarray, eps: float = 1e-12) -> np.ndarray:
    x = np.asarray(matrix, dtype=np.float32)
    if x.ndim == 1:
        x = x.reshape(1, -1)
    n = np.linalg.norm(x, axis=1, keepdims=True)
    return x / np.maximum(n, eps)

