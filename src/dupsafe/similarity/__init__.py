"""
Near-duplicate detection for text (edit distance) and images (perceptual hashes).
Both engines share the single-link "first match wins, then freeze" grouping.
"""

from .grouping import SimilarityConfig, single_link_groups
from .text import levenshtein, text_similarity, group_similar_text
from .image import (
    average_hash, difference_hash, perceptual_hash, color_hash, image_signature,
    hamming_similarity, compare_signatures, compare_images, group_similar_images)

__all__ = [
    "SimilarityConfig",
    "single_link_groups",
    "levenshtein",
    "text_similarity",
    "group_similar_text",
    "average_hash",
    "difference_hash",
    "perceptual_hash",
    "color_hash",
    "image_signature",
    "hamming_similarity",
    "compare_signatures",
    "compare_images",
    "group_similar_images",
]
