#!/usr/bin/env python3
"""
Tests for CV chunking: offsets, boundaries, overlap and reconstruction.
"""
import pytest

from core.config_loader import ChunkingConfig
from core.exceptions import ValidationError
from etl.resume.chunker import chunk_text, reconstruct_text, estimate_chunk_count


class TestChunkText:

    def test_empty_and_whitespace_give_no_chunks(self):
        assert chunk_text("") == []
        assert chunk_text("   \n\t ") == []

    def test_short_text_is_single_chunk(self):
        text = "Python developer with five years of experience."
        chunks = chunk_text(text)

        assert len(chunks) == 1
        assert chunks[0].text == text
        assert (chunks[0].start_position, chunks[0].end_position) == (0, len(text))
        assert chunks[0].chunk_index == 0

    def test_unbroken_text_uses_hard_cuts_with_overlap(self):
        text = "a" * 3000
        chunks = chunk_text(text)

        offsets = [(c.start_position, c.end_position) for c in chunks]
        assert offsets == [(0, 1200), (1100, 2300), (2200, 3000)]
        assert [c.chunk_index for c in chunks] == [0, 1, 2]

    def test_prefers_sentence_boundary(self):
        text = "x" * 900 + ". " + "y" * 1000
        chunks = chunk_text(text)

        assert chunks[0].end_position == 902
        assert chunks[0].text.endswith(". ")
        assert chunks[1].start_position == 802
        assert chunks[-1].end_position == len(text)

    def test_falls_back_to_whitespace_boundary(self):
        text = "a" * 1000 + " " + "b" * 1000
        chunks = chunk_text(text)

        assert chunks[0].end_position == 1000
        assert chunks[0].text == "a" * 1000

    def test_chunk_text_matches_offsets(self):
        text = ("Experienced engineer. Built APIs in Python and Go! " * 80).strip()
        for chunk in chunk_text(text):
            assert chunk.text == text[chunk.start_position:chunk.end_position]
            assert chunk.length <= 1200 + 200

    def test_reconstruct_round_trip(self):
        text = ("Led a team of five developers. Shipped weekly releases.\n" * 60).strip()
        chunks = chunk_text(text)

        assert len(chunks) > 1
        assert reconstruct_text(chunks) == text

    def test_tail_merges_into_last_chunk(self):
        config = ChunkingConfig(max_chunk_size=100, overlap_size=10, min_chunk_size=20)
        text = "z" * 115
        chunks = chunk_text(text, config)

        assert len(chunks) == 1
        assert chunks[0].end_position == 115

    def test_large_overlap_without_minimum_still_advances(self):
        config = ChunkingConfig(max_chunk_size=100, overlap_size=90, min_chunk_size=0)
        text = ("word " * 14 + "end. ") * 40
        chunks = chunk_text(text, config)

        starts = [c.start_position for c in chunks]
        assert all(b > a for a, b in zip(starts, starts[1:]))
        assert chunks[-1].end_position == len(text)
        assert reconstruct_text(chunks) == text

    @pytest.mark.parametrize("config", [
        ChunkingConfig(max_chunk_size=100, overlap_size=100, min_chunk_size=10),
        ChunkingConfig(max_chunk_size=100, overlap_size=10, min_chunk_size=100),
        ChunkingConfig(max_chunk_size=0, overlap_size=0, min_chunk_size=0),
    ])
    def test_invalid_config_rejected(self, config):
        with pytest.raises(ValidationError):
            chunk_text("some text", config)


def test_estimate_chunk_count():
    assert estimate_chunk_count(0) == 0
    assert estimate_chunk_count(1000) == 1
    assert estimate_chunk_count(3000) == len(chunk_text("a" * 3000))
