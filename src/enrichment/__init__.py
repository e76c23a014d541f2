"""Enrichment capability and the stage that persists enriched articles."""

from .polisher import (
    ChatCompletionPolisher,
    PassthroughPolisher,
    PolishedText,
    Polisher,
    build_polisher,
    clean_ai_response,
)
from .stage import EnrichmentReport, EnrichmentStage

__all__ = [
    "ChatCompletionPolisher",
    "EnrichmentReport",
    "EnrichmentStage",
    "PassthroughPolisher",
    "PolishedText",
    "Polisher",
    "build_polisher",
    "clean_ai_response",
]
