"""
Integration tests for DeduplicationCommand — the full scan pipeline.
"""
import pytest

from dupsafe.commands import DeduplicationCommand
from dupsafe.core.models import ScanParams

TEXT = (
    "Meeting notes: the release is planned for Friday. "
    "Remember to update the changelog and tag the build.\n"
)


class TestDeduplicationCommand:

    def test_exact_duplicates(self, test_files):
        params = ScanParams(paths=[str(test_files["dup1_a"].parent)],
                            find_similar_text=False, find_similar_images=False)
        result = DeduplicationCommand().execute(params)

        assert len(result.duplicate_groups) == 2
        assert result.similar_text_groups == []
        assert result.stats.space_savings == 4096

    def test_exact_duplicates_are_not_reported_as_similar(self, tmp_path):
        (tmp_path / "a.txt").write_text(TEXT, encoding="utf-8")
        (tmp_path / "b.txt").write_text(TEXT, encoding="utf-8")
        (tmp_path / "c.txt").write_text(TEXT + " ", encoding="utf-8")

        result = DeduplicationCommand().execute(ScanParams(paths=[str(tmp_path)]))

        assert len(result.duplicate_groups) == 1
        assert result.similar_text_groups == []

    def test_similar_text_among_remaining_files(self, tmp_path):
        (tmp_path / "a.txt").write_text(TEXT, encoding="utf-8")
        (tmp_path / "b.txt").write_text(TEXT.replace("Friday", "Monday"), encoding="utf-8")
        (tmp_path / "c.txt").write_text("Shopping list: eggs, milk, bread.\n", encoding="utf-8")

        result = DeduplicationCommand().execute(ScanParams(paths=[str(tmp_path)]))

        assert result.duplicate_groups == []
        assert result.similar_text_groups == [[str(tmp_path / "a.txt"), str(tmp_path / "b.txt")]]
        assert result.stats.stage_stats["text"]["groups"] == 1
        assert not result.is_empty

    def test_images_are_not_compared_as_text(self, tmp_path, pattern):
        pattern(64, 64).save(tmp_path / "a.png")
        pattern(64, 64).resize((48, 48)).save(tmp_path / "b.png")

        result = DeduplicationCommand().execute(
            ScanParams(paths=[str(tmp_path)], image_threshold=0.8))

        assert result.similar_text_groups == []
        assert [[p for p, _ in g] for g in result.similar_image_groups] == [
            [str(tmp_path / "a.png"), str(tmp_path / "b.png")]]

    def test_excluded_directory(self, test_files):
        root = test_files["dup1_a"].parent
        command = DeduplicationCommand(excluded_dirs=[str(root / "subdir")])
        result = command.execute(ScanParams(paths=[str(root)], find_similar_text=False,
                                            find_similar_images=False))
        assert all(len(g.files) == 2 for g in result.duplicate_groups)
        assert all("subdir" not in f.path for g in result.duplicate_groups for f in g.files)

    def test_no_files_raises(self, tmp_path):
        with pytest.raises(RuntimeError, match="No files found"):
            DeduplicationCommand().execute(ScanParams(paths=[str(tmp_path)]))

    def test_cancelled_scan_returns_empty_result(self, test_files):
        result = DeduplicationCommand().execute(
            ScanParams(paths=[str(test_files["dup1_a"].parent)]),
            stopped_flag=lambda: True)
        assert result.is_empty
