"""Extraction pipeline."""

from notegraph.pipeline.processor import ExtractionOrchestrator, ProcessResult, RunSummary

__all__ = ["ExtractionOrchestrator", "ProcessResult", "RunSummary"]
