"""
Shared fixtures for dupsafe tests.
Creates isolated temporary directories with controlled test files.
"""
import math
import pytest
from pathlib import Path
from typing import Dict

from PIL import Image

from dupsafe.safety.quarantine import QuarantineConfig, QuarantineManager

FIXED_TIME = 1_700_000_000.0


@pytest.fixture
def test_files(tmp_path) -> Dict[str, Path]:
    """
    Creates controlled test files for duplicate scenarios:
    - 2 identical files (duplicates)
    - 2 more identical files of a different size
    - 2 unique files
    - 1 empty file (should be filtered by the collector)
    - 1 duplicate inside a subdirectory
    """
    root = tmp_path / "data"
    root.mkdir()
    files = {}

    content_a = b"A" * 1024
    files["dup1_a"] = root / "dup1_a.bin"
    files["dup1_b"] = root / "dup1_b.bin"
    files["dup1_a"].write_bytes(content_a)
    files["dup1_b"].write_bytes(content_a)

    content_b = b"B" * 2048
    files["dup2_a"] = root / "dup2_a.bin"
    files["dup2_b"] = root / "dup2_b.bin"
    files["dup2_a"].write_bytes(content_b)
    files["dup2_b"].write_bytes(content_b)

    files["unique1"] = root / "unique1.bin"
    files["unique1"].write_bytes(b"C" * 1500)
    files["unique2"] = root / "unique2.bin"
    files["unique2"].write_bytes(b"D" * 2500)

    files["empty"] = root / "empty.bin"
    files["empty"].write_bytes(b"")

    subdir = root / "subdir"
    subdir.mkdir()
    files["sub_dup"] = subdir / "dup_in_subdir.bin"
    files["sub_dup"].write_bytes(content_a)

    return files


@pytest.fixture
def quarantine_config(tmp_path) -> QuarantineConfig:
    """Quarantine area isolated inside the test's temp directory."""
    return QuarantineConfig(base_dir=tmp_path / "state")


@pytest.fixture
def manager(quarantine_config) -> QuarantineManager:
    """Manager with a frozen clock so quarantine names are predictable."""
    return QuarantineManager(quarantine_config, clock=lambda: FIXED_TIME)


def pattern_image(width: int, height: int) -> Image.Image:
    """
    Smooth RGB image whose brightness is not separable in x and y, so its
    low-frequency DCT block carries real energy and perceptual hash bits are stable.
    """
    image = Image.new("RGB", (width, height))
    pixels = image.load()
    for x in range(width):
        for y in range(height):
            u, v = x / (width - 1), y / (height - 1)
            wave = math.sin(2 * math.pi * (1.5 * u + 0.5 * v)) * math.cos(math.pi * 2.5 * v)
            level = int(127.5 * (1 + wave))
            pixels[x, y] = (level, int(255 * u * v), 255 - level)
    return image


@pytest.fixture
def image_factory(tmp_path):
    """Returns a function that saves an image under tmp_path/images and returns its path."""
    folder = tmp_path / "images"
    folder.mkdir()

    def _save(name: str, image: Image.Image) -> str:
        path = folder / name
        image.save(path)
        return str(path)

    return _save


@pytest.fixture
def pattern():
    return pattern_image
