"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

similarity/image.py
Near-duplicate detection for images using a four-part perceptual signature.

Signature components (all 64-bit):
- average hash : 8x8 grayscale, bit set where luma >= integer mean
- perceptual   : 32x32 grayscale, 2-D DCT, low 8x8 block minus DC vs. median
- difference   : 9x8 grayscale, bit set where a pixel is brighter than its right neighbour
- color        : 8x8 RGB quantized to 2 bits per channel, folded with hash*31 + code

Signatures are compared with a weighted Hamming similarity.
"""

import logging
import math
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional, Tuple

import numpy as np
from PIL import Image

from dupsafe.core.models import ImageSignature
from dupsafe.similarity.grouping import SimilarityConfig, single_link_groups

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_THRESHOLD = 0.9
HASH_BITS = 64
MASK64 = (1 << 64) - 1
PHASH_SIZE = 32
RESAMPLE = Image.Resampling.LANCZOS

WEIGHT_AVERAGE = 0.3
WEIGHT_PERCEPTUAL = 0.4
WEIGHT_DIFFERENCE = 0.2
WEIGHT_COLOR = 0.1

DECODE_ERRORS = (OSError, ValueError, Image.DecompressionBombError)


def _pack_bits(bits: Iterable[bool]) -> int:
    value = 0
    for i, bit in enumerate(bits):
        if bit:
            value |= 1 << i
    return value


def _luma(image: Image.Image, width: int, height: int) -> np.ndarray:
    """Grayscale pixels resized to width x height, shape (height, width)."""
    return np.asarray(image.convert("L").resize((width, height), RESAMPLE), dtype=np.int64)


def average_hash(image: Image.Image) -> int:
    pixels = _luma(image, 8, 8).flatten()
    mean = int(pixels.sum()) // pixels.size
    return _pack_bits(pixels >= mean)


def difference_hash(image: Image.Image) -> int:
    pixels = _luma(image, 9, 8)
    return _pack_bits((pixels[:, :-1] > pixels[:, 1:]).flatten())


def _dct_matrix(size: int) -> np.ndarray:
    """DCT-II basis with c(0) = 1/sqrt(2), c(k) = 1."""
    k = np.arange(size).reshape(-1, 1)
    n = np.arange(size).reshape(1, -1)
    basis = np.cos((2 * n + 1) * k * math.pi / (2 * size))
    basis[0, :] *= 1 / math.sqrt(2)
    return basis


_DCT = _dct_matrix(PHASH_SIZE)


def perceptual_hash(image: Image.Image) -> int:
    pixels = _luma(image, PHASH_SIZE, PHASH_SIZE).astype(np.float64) / 255.0
    coefficients = 0.25 * (_DCT @ pixels @ _DCT.T)
    low = coefficients[:8, :8].flatten()[1:]  # drop DC
    median = np.sort(low)[len(low) // 2]
    return _pack_bits(low > median)


def color_hash(image: Image.Image) -> int:
    pixels = np.asarray(image.convert("RGB").resize((8, 8), RESAMPLE), dtype=np.int64).reshape(-1, 3)
    value = 0
    for r, g, b in pixels:
        code = (int(r) // 64) << 4 | (int(g) // 64) << 2 | (int(b) // 64)
        value = (value * 31 + code) & MASK64
    return value


def signature_of(image: Image.Image, parallel: bool = True) -> ImageSignature:
    """
    Computes the four hashes of an already decoded image.
    The branches share no state and run on a small pool when `parallel` is set.
    """
    branches = (average_hash, perceptual_hash, difference_hash, color_hash)
    if parallel:
        with ThreadPoolExecutor(max_workers=len(branches)) as executor:
            avg, phash, dhash, color = executor.map(lambda fn: fn(image), branches)
    else:
        avg, phash, dhash, color = (fn(image) for fn in branches)
    return ImageSignature(avg_hash=avg, phash=phash, dhash=dhash, color_hash=color)


def image_signature(path: str, parallel: bool = True) -> ImageSignature:
    """
    Decodes `path` with Pillow and returns its signature.
    Raises OSError (including PIL.UnidentifiedImageError) or ValueError if
    the file cannot be decoded.
    """
    with Image.open(path) as img:
        img.load()
        return signature_of(img, parallel=parallel)


def hamming_similarity(h1: int, h2: int) -> float:
    distance = bin((h1 ^ h2) & MASK64).count("1")
    return 1.0 - min(1.0, distance / HASH_BITS)


def compare_signatures(sig1: ImageSignature, sig2: ImageSignature) -> float:
    """Weighted similarity: 0.3 average + 0.4 perceptual + 0.2 difference + 0.1 color."""
    return (
        WEIGHT_AVERAGE * hamming_similarity(sig1.avg_hash, sig2.avg_hash)
        + WEIGHT_PERCEPTUAL * hamming_similarity(sig1.phash, sig2.phash)
        + WEIGHT_DIFFERENCE * hamming_similarity(sig1.dhash, sig2.dhash)
        + WEIGHT_COLOR * hamming_similarity(sig1.color_hash, sig2.color_hash)
    )


def compare_images(path1: str, path2: str) -> float:
    return compare_signatures(image_signature(path1), image_signature(path2))


def load_signatures(
        paths: List[str],
        max_workers: Optional[int] = None,
) -> List[Tuple[str, ImageSignature]]:
    """Signatures for every decodable image, in input order. Others are skipped."""
    def _safe_signature(path: str) -> Tuple[str, Optional[ImageSignature]]:
        try:
            return path, image_signature(path, parallel=False)
        except DECODE_ERRORS as e:
            logger.warning(f"Skipping undecodable image {path}: {e}")
            return path, None

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        results = list(executor.map(_safe_signature, paths))
    return [(path, sig) for path, sig in results if sig is not None]


def group_similar_images(
        paths: List[str],
        threshold: float = DEFAULT_IMAGE_THRESHOLD,
        exclude: Optional[Iterable[str]] = None,
        config: Optional[SimilarityConfig] = None,
) -> List[List[Tuple[str, float]]]:
    """
    Groups near-duplicate images.

    Returns:
        Groups of (path, score against the seed); the seed comes first with 1.0.
    """
    if not 0.0 <= threshold <= 1.0:
        raise ValueError(f"threshold must be between 0 and 1, got {threshold}")

    config = config or SimilarityConfig()
    excluded = set(exclude or ())
    candidates = [p for p in paths if p not in excluded]
    entries = load_signatures(candidates, max_workers=config.max_workers)

    sizes = []
    for path, _ in entries:
        try:
            sizes.append(os.path.getsize(path))
        except OSError:
            sizes.append(-1)

    signatures = [sig for _, sig in entries]
    groups = single_link_groups(
        sizes=sizes,
        score=lambda i, j: compare_signatures(signatures[i], signatures[j]),
        threshold=threshold,
        config=config,
    )

    logger.debug(f"Found {len(groups)} similar image groups among {len(entries)} images")
    return [[(entries[index][0], score) for index, score in group] for group in groups]
