#!/usr/bin/env python3
"""
CV Chunker - Split normalized resume text into overlapping segments.

Each chunk is embedded independently so that the best matching excerpt of a
CV can be found for a job posting. Chunks prefer to end on a sentence
boundary, then on whitespace, and only cut mid-word as a last resort.

Chunk text is always ``text[start_position:end_position]`` so the original
text can be rebuilt from the chunks and their offsets.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from core.config_loader import ChunkingConfig
from core.exceptions import ValidationError

logger = logging.getLogger(__name__)

SENTENCE_ENDINGS = ('. ', '! ', '? ', '.\n', '!\n', '?\n')
SENTENCE_BOUNDARY_RATIO = 0.7
WHITESPACE_BOUNDARY_RATIO = 0.8


@dataclass
class TextChunk:
    """A contiguous span of the source text."""
    text: str
    start_position: int
    end_position: int
    chunk_index: int

    @property
    def length(self) -> int:
        return self.end_position - self.start_position


def validate_chunking_config(config: ChunkingConfig) -> None:
    if config.max_chunk_size <= 0 or config.min_chunk_size < 0 or config.overlap_size < 0:
        raise ValidationError("Chunk sizes must be non-negative and max_chunk_size must be positive")
    if config.min_chunk_size >= config.max_chunk_size:
        raise ValidationError("min_chunk_size must be smaller than max_chunk_size")
    if config.overlap_size >= config.max_chunk_size:
        raise ValidationError("overlap_size must be smaller than max_chunk_size")


def _find_chunk_end(text: str, start: int, config: ChunkingConfig) -> int:
    """Pick the end offset for a chunk starting at ``start``.

    Assumes more than ``max_chunk_size`` characters remain.
    """
    max_size = config.max_chunk_size
    hard_end = start + max_size
    window = text[start:hard_end]

    # Sentence boundary: position just past the ender
    sentence_end = -1
    for ending in SENTENCE_ENDINGS:
        idx = window.rfind(ending)
        if idx != -1:
            sentence_end = max(sentence_end, idx + len(ending))
    if sentence_end > max_size * SENTENCE_BOUNDARY_RATIO and sentence_end >= config.min_chunk_size:
        return start + sentence_end

    # Whitespace boundary: cut before the whitespace
    space_idx = max(window.rfind(' '), window.rfind('\n'))
    if space_idx > max_size * WHITESPACE_BOUNDARY_RATIO and space_idx >= config.min_chunk_size:
        return start + space_idx

    return hard_end


def chunk_text(text: str, config: Optional[ChunkingConfig] = None) -> List[TextChunk]:
    """
    Split text into overlapping chunks.

    Args:
        text: Normalized resume text
        config: Chunk sizes (defaults 1200/100/200)

    Returns:
        Ordered chunks; empty list for empty or whitespace-only input
    """
    config = config or ChunkingConfig()
    validate_chunking_config(config)

    if not text or not text.strip():
        return []

    chunks: List[TextChunk] = []
    text_length = len(text)
    start = 0

    while start < text_length:
        remaining = text_length - start
        # Merge a short tail into this chunk instead of emitting a tiny one
        if remaining <= config.max_chunk_size + config.min_chunk_size:
            end = text_length
        else:
            end = _find_chunk_end(text, start, config)

        chunks.append(TextChunk(
            text=text[start:end],
            start_position=start,
            end_position=end,
            chunk_index=len(chunks),
        ))

        if end >= text_length:
            break

        next_start = max(end - config.overlap_size, start + config.min_chunk_size)
        start = max(min(next_start, end), start + 1)

    logger.debug(f"Chunked {text_length} chars into {len(chunks)} chunks")
    return chunks


def reconstruct_text(chunks: List[TextChunk]) -> str:
    """Rebuild the source text from ordered chunks, dropping overlapping prefixes."""
    if not chunks:
        return ""
    parts = [chunks[0].text]
    covered = chunks[0].end_position
    for chunk in chunks[1:]:
        skip = covered - chunk.start_position
        parts.append(chunk.text[skip:])
        covered = chunk.end_position
    return ''.join(parts)


def estimate_chunk_count(text_length: int, config: Optional[ChunkingConfig] = None) -> int:
    """Rough chunk count for a text of the given length."""
    config = config or ChunkingConfig()
    if text_length <= 0:
        return 0
    if text_length <= config.max_chunk_size + config.min_chunk_size:
        return 1
    stride = max(config.max_chunk_size - config.overlap_size, config.min_chunk_size)
    return 1 + -(-(text_length - config.max_chunk_size - config.min_chunk_size) // stride)
