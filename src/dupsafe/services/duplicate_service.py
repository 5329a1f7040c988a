from typing import List, Tuple, Sequence, Union
from dupsafe.core.models import DuplicateGroup

SimilarGroup = Sequence[Union[str, Tuple[str, float]]]


class DuplicateService:
    @staticmethod
    def remove_files_from_groups(groups: List[DuplicateGroup], file_paths: List[str]) -> List[DuplicateGroup]:
        """
        Removes files with the specified paths from all duplicate groups.

        Groups that contain fewer than 2 files after removal are discarded.

        Args:
            groups: List of duplicate groups to update.
            file_paths: List of file paths to remove.

        Returns:
            Updated list of duplicate groups.
        """
        removed = set(file_paths)
        updated_groups = []
        for group in groups:
            filtered_files = [f for f in group.files if f.path not in removed]
            if len(filtered_files) >= 2:
                updated_groups.append(
                    DuplicateGroup(size=group.size, files=filtered_files, algorithm=group.algorithm))
        return updated_groups

    @staticmethod
    def keep_only_one_file_per_group(groups: List[DuplicateGroup]) -> Tuple[List[str], List[DuplicateGroup]]:
        """
        Keeps one file per group and marks the rest for removal.
        Returns:
            - List of file paths to be removed
            - Updated list of duplicate groups
        """
        files_to_delete = []
        for group in groups:
            if len(group.files) > 1:
                for file in group.files[1:]:
                    files_to_delete.append(file.path)

        updated_groups = DuplicateService.remove_files_from_groups(groups, files_to_delete)

        return files_to_delete, updated_groups

    @staticmethod
    def extra_members(similar_groups: List[SimilarGroup]) -> List[str]:
        """
        Paths of every member except the seed, for text groups (paths) and
        image groups ((path, score) pairs) alike.
        """
        paths = []
        for group in similar_groups:
            for member in group[1:]:
                paths.append(member[0] if isinstance(member, tuple) else member)
        return paths

