"""
Tests for DuplicateService — choosing which files leave and which stay.
"""
from dupsafe.core.models import DigestAlgorithm, DuplicateGroup, File
from dupsafe.services.duplicate_service import DuplicateService


def group(size, *paths, algorithm=DigestAlgorithm.BLAKE3):
    return DuplicateGroup(size=size, files=[File(path=p, size=size) for p in paths], algorithm=algorithm)


class TestDuplicateService:

    def test_keep_only_one_file_per_group(self):
        groups = [group(10, "/a1", "/a2", "/a3"), group(20, "/b1", "/b2")]

        to_remove, updated = DuplicateService.keep_only_one_file_per_group(groups)

        assert to_remove == ["/a2", "/a3", "/b2"]
        assert updated == []

    def test_remove_files_from_groups_drops_small_groups(self):
        groups = [group(10, "/a1", "/a2", "/a3"), group(20, "/b1", "/b2")]

        updated = DuplicateService.remove_files_from_groups(groups, ["/a1", "/b2"])

        assert len(updated) == 1
        assert [f.path for f in updated[0].files] == ["/a2", "/a3"]
        assert updated[0].algorithm is DigestAlgorithm.BLAKE3

    def test_extra_members_of_text_groups(self):
        assert DuplicateService.extra_members([["/s1", "/m1", "/m2"], ["/s2", "/m3"]]) == ["/m1", "/m2", "/m3"]

    def test_extra_members_of_image_groups(self):
        groups = [[("/s1", 1.0), ("/m1", 0.93)]]
        assert DuplicateService.extra_members(groups) == ["/m1"]
