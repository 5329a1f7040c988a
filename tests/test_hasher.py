"""
Unit tests for content digests.
Verifies digest sizes, reference values, and that the streamed and
memory-mapped read paths agree.
"""
import hashlib

import blake3
import pytest
import xxhash

from dupsafe.core.hasher import HasherImpl, digest, digest_bytes, digest_file, digest_files
from dupsafe.core.models import DigestAlgorithm, File, HashingPolicy, Security, Speed

HELLO = b"hello world"


class TestDigestBytes:

    def test_sha256_reference_value(self):
        assert digest_bytes(HELLO, DigestAlgorithm.SHA256).hex() == (
            "b94d27b9934d3e08a52e52d7da7dabfac484efe37a5380ee9088f7ace2efcde9"
        )

    def test_blake3_matches_library(self):
        assert digest_bytes(HELLO, DigestAlgorithm.BLAKE3) == blake3.blake3(HELLO).digest()

    def test_xxh3_is_little_endian_u64(self):
        """XXH3 digests are the 64-bit value as 8 little-endian bytes."""
        expected = xxhash.xxh3_64_intdigest(HELLO).to_bytes(8, "little")
        result = digest_bytes(HELLO, DigestAlgorithm.XXH3)
        assert result == expected
        assert len(result) == 8

    @pytest.mark.parametrize("algorithm", list(DigestAlgorithm))
    def test_digest_size(self, algorithm):
        assert len(digest_bytes(b"", algorithm)) == algorithm.digest_size


class TestDigestFile:

    @pytest.mark.parametrize("algorithm", list(DigestAlgorithm))
    def test_file_digest_equals_buffer_digest(self, tmp_path, algorithm):
        path = tmp_path / "data.bin"
        content = b"test content " * 5000
        path.write_bytes(content)
        assert digest(path, algorithm) == digest_bytes(content, algorithm)

    @pytest.mark.parametrize("algorithm", list(DigestAlgorithm))
    def test_mmap_and_chunked_reads_agree(self, tmp_path, algorithm):
        """Forcing the memory-mapped path must not change the digest."""
        path = tmp_path / "large.bin"
        path.write_bytes(bytes(range(256)) * 1000)

        chunked = digest(path, algorithm, mmap_threshold=10 ** 9, chunk_size=1000)
        mapped = digest(path, algorithm, mmap_threshold=0)
        assert chunked == mapped

    def test_empty_file(self, tmp_path):
        """Zero-length files cannot be mapped; they must still digest."""
        path = tmp_path / "empty.bin"
        path.write_bytes(b"")
        assert digest(path, DigestAlgorithm.SHA256, mmap_threshold=0) == hashlib.sha256(b"").digest()

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(OSError):
            digest(tmp_path / "nope.bin", DigestAlgorithm.BLAKE3)

    def test_digest_file_uses_policy(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_bytes(HELLO)
        result = digest_file(str(path), HashingPolicy(security=Security.HIGH))
        assert result.algorithm is DigestAlgorithm.SHA256
        assert result.hex.startswith("b94d27b9")

    def test_digest_files_reports_failures_in_order(self, tmp_path):
        good1 = tmp_path / "a.bin"
        good2 = tmp_path / "b.bin"
        good1.write_bytes(b"one")
        good2.write_bytes(b"two")
        missing = tmp_path / "missing.bin"

        digests, failures = digest_files(
            [str(good1), str(missing), str(good2)], HashingPolicy(), max_workers=2)

        assert [d.path for d in digests] == [str(good1), str(good2)]
        assert len(failures) == 1
        assert failures[0][0] == str(missing)


class TestHasherImpl:

    def test_caches_digest_on_file(self, tmp_path):
        path = tmp_path / "a.bin"
        path.write_bytes(b"abc")
        file = File(path=str(path), size=3)
        hasher = HasherImpl(HashingPolicy())

        first = hasher.compute_digest(file)
        path.write_bytes(b"xyz")  # cached value is reused
        assert hasher.compute_digest(file) is first
        assert file.digest is first

    def test_algorithm_follows_extension(self, tmp_path):
        policy = HashingPolicy(security=Security.LOW, speed=Speed.FASTEST)
        hasher = HasherImpl(policy)
        photo = tmp_path / "photo.JPG"
        photo.write_bytes(b"jpeg bytes")

        result = hasher.compute_digest(File(path=str(photo), size=10))
        assert result.algorithm is DigestAlgorithm.XXH3
        assert len(result.digest) == 8
