#!/usr/bin/env python3
"""
Resume Extraction Module - ETL for CV text and features.

Handles:
- PDF text extraction and normalization
- Overlapping chunking for embeddings
- Keyword/regex feature extraction (skills, experience, education)
"""
from etl.resume.text_extractor import TextExtractor, ExtractedText
from etl.resume.chunker import TextChunk, chunk_text
from etl.resume.nlp import CvNlpProcessor
from etl.resume.models import ProcessedCvData

__all__ = [
    'TextExtractor',
    'ExtractedText',
    'TextChunk',
    'chunk_text',
    'CvNlpProcessor',
    'ProcessedCvData',
]
