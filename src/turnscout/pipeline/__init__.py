"""Extraction pipeline."""

from .extract import ExtractionPipeline, ScanResult

__all__ = ["ExtractionPipeline", "ScanResult"]
