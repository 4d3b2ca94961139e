"""Fusion group construction and conflict resolution."""

from .fusion_group_builder import ESTIMATED_BYTES_PER_FILE, FusionGroupBuilder, sanitize_segment

__all__ = ["ESTIMATED_BYTES_PER_FILE", "FusionGroupBuilder", "sanitize_segment"]
