"""Scoring package exports."""

from .quality_assessor import QualityAssessor


def create_assessor(quality_config=None) -> QualityAssessor:
    """Factory returning an assessor built from configuration."""
    return QualityAssessor(quality_config)


__all__ = ["QualityAssessor", "create_assessor"]
