#!/usr/bin/env python3
"""
dupsafe CLI — find duplicate and near-duplicate files, quarantine them, then
commit or roll back.
Nothing is deleted during a scan: duplicates go to the quarantine area first,
and only `commit` removes them for good.
"""
from __future__ import annotations  # Enable postponed evaluation of annotations (PEP 563)
import argparse
import sys
import os
import time
from pathlib import Path
from typing import List, Optional, NoReturn
import logging

logging.basicConfig(
    level=logging.ERROR,
    format="%(levelname)-8s | %(name)-25s | %(message)s"
)

# === EARLY DEPENDENCY VALIDATION ===
_MISSING_DEPS = []
try:
    import xxhash  # noqa: F401
except ImportError:
    _MISSING_DEPS.append("xxhash")

try:
    import blake3  # noqa: F401
except ImportError:
    _MISSING_DEPS.append("blake3")

try:
    from send2trash import send2trash  # noqa: F401
except ImportError:
    _MISSING_DEPS.append("send2trash")

try:
    import PIL  # noqa: F401
except ImportError:
    _MISSING_DEPS.append("Pillow")

try:
    import numpy  # noqa: F401
except ImportError:
    _MISSING_DEPS.append("numpy")

try:
    import rapidfuzz  # noqa: F401
except ImportError:
    _MISSING_DEPS.append("rapidfuzz")

if _MISSING_DEPS:
    print("❌ Missing required dependencies:", file=sys.stderr)
    print(f"   pip install {' '.join(_MISSING_DEPS)}", file=sys.stderr)
    sys.exit(1)

# === NORMAL IMPORTS (after validation) ===
from dupsafe.core.models import ScanParams, HashingPolicy, BatchResult, QuarantineRecord
from dupsafe.commands import DeduplicationCommand, ScanResult
from dupsafe.safety.quarantine import QuarantineConfig, QuarantineManager, read_recovery_log
from dupsafe.services.duplicate_service import DuplicateService
from dupsafe.utils.convert_utils import ConvertUtils
from dupsafe.aliases import (
    SECURITY_ALIASES, SECURITY_CHOICES, SECURITY_HELP_TEXT,
    SPEED_ALIASES, SPEED_CHOICES, SPEED_HELP_TEXT,
    EPILOG_TEXT
)


class CLIApplication:
    """Main CLI application controller."""

    def __init__(self):
        self.start_time: float = time.time()
        self.verbose: bool = False
        self.quiet: bool = False
        self.config: Optional[QuarantineConfig] = None

        # Fix encoding for Windows consoles to prevent UnicodeEncodeError
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding='utf-8')
            sys.stderr.reconfigure(encoding='utf-8')

    @staticmethod
    def parse_args(args=None) -> argparse.Namespace:
        """Parse command-line arguments."""
        parser = argparse.ArgumentParser(
            prog="dupsafe",
            description="dupsafe — duplicate finder with reversible quarantine",
            formatter_class=argparse.RawTextHelpFormatter,
            epilog=EPILOG_TEXT
        )
        parser.add_argument(
            "--base-dir",
            type=str,
            default=None,
            help="Directory holding quarantine state (default: ~/.dupsafe)"
        )
        parser.add_argument(
            "--quiet", "-q",
            action="store_true",
            help="Suppress non-essential output"
        )
        parser.add_argument(
            "--verbose", "-v",
            action="store_true",
            help="Show progress, statistics and skipped files"
        )

        sub = parser.add_subparsers(dest="command", required=True)

        scan = sub.add_parser("scan", formatter_class=argparse.RawTextHelpFormatter,
                              help="Find exact and near duplicates")
        scan.add_argument("paths", nargs="+", help="Files and/or directories to scan")
        scan.add_argument("--security", choices=SECURITY_CHOICES, default="high", help=SECURITY_HELP_TEXT)
        scan.add_argument("--speed", choices=SPEED_CHOICES, default="balanced", help=SPEED_HELP_TEXT)
        scan.add_argument("--text-threshold", type=float, default=0.8,
                          help="Minimum text similarity, 0..1 (default: 0.8)")
        scan.add_argument("--image-threshold", type=float, default=0.9,
                          help="Minimum image similarity, 0..1 (default: 0.9)")
        scan.add_argument("--no-text", action="store_true", help="Skip near-duplicate text detection")
        scan.add_argument("--no-images", action="store_true", help="Skip near-duplicate image detection")
        scan.add_argument("--workers", type=int, default=None, help="Worker threads (default: auto)")
        scan.add_argument("--quarantine-dupes", action="store_true",
                          help="Quarantine every exact duplicate except the first of each group")
        scan.add_argument("--include-similar", action="store_true",
                          help="With --quarantine-dupes, also quarantine near duplicates")
        scan.add_argument("--force", action="store_true",
                          help="Skip confirmation prompt (for automation/scripts)")

        quarantine = sub.add_parser("quarantine", help="Move files into quarantine")
        quarantine.add_argument("paths", nargs="+")

        commit = sub.add_parser("commit", help="Permanently remove all quarantined files")
        commit.add_argument("--trash", action="store_true", help="Move to the system trash instead of deleting")
        commit.add_argument("--force", action="store_true", help="Skip confirmation prompt")

        sub.add_parser("rollback", help="Restore all quarantined files")

        restore = sub.add_parser("restore", help="Restore one quarantined file")
        restore.add_argument("path", help="Original path of the file")

        sub.add_parser("list", help="List quarantined files")
        sub.add_parser("stats", help="Show quarantine totals")
        sub.add_parser("log", help="Show the recovery log")

        recover = sub.add_parser("recover", help="Restore a file from the recovery log alone")
        recover.add_argument("path", help="Original path of the file")

        return parser.parse_args(args)

    def validate_args(self, args: argparse.Namespace) -> None:
        """Validate command-line arguments before execution."""
        if args.command != "scan":
            return

        for name in ("text_threshold", "image_threshold"):
            value = getattr(args, name)
            if not 0.0 <= value <= 1.0:
                self.error_exit(f"--{name.replace('_', '-')} must be between 0 and 1")

        if args.workers is not None and args.workers < 1:
            self.error_exit("--workers must be at least 1")

        if args.include_similar and not args.quarantine_dupes:
            self.error_exit("--include-similar can only be used with --quarantine-dupes")
        if args.force and not args.quarantine_dupes:
            self.error_exit("--force can only be used with --quarantine-dupes")

        if args.quarantine_dupes and not args.force:
            if not sys.stdin.isatty() or not sys.stdout.isatty():
                self.error_exit(
                    "Cannot request interactive confirmation in non-interactive session.\n"
                    "Use --force flag to proceed without confirmation when piping output or running in scripts."
                )

        for raw in args.paths:
            if not Path(raw).exists():
                self.warning(f"Path not found: {raw}")

    def create_params(self, args: argparse.Namespace) -> ScanParams:
        """Create ScanParams from CLI arguments."""
        try:
            return ScanParams(
                paths=[str(Path(p).expanduser()) for p in args.paths],
                policy=HashingPolicy(
                    security=SECURITY_ALIASES[args.security],
                    speed=SPEED_ALIASES[args.speed],
                ),
                text_threshold=args.text_threshold,
                image_threshold=args.image_threshold,
                find_similar_text=not args.no_text,
                find_similar_images=not args.no_images,
                max_workers=args.workers,
            )
        except ValueError as e:
            self.error_exit(f"Parameter error: {e}")

    def progress_callback(self, stage: str, current: int, total: Optional[int]) -> None:
        """CLI progress callback - shows progress in console."""
        if not self.verbose:
            return

        if total and total > 0:
            percent = (current / total) * 100
            sys.stderr.write(f"\r  [{stage}] {current}/{total} ({percent:.1f}%)")
        else:
            sys.stderr.write(f"\r  [{stage}] {current} files processed...")
        sys.stderr.flush()

    @staticmethod
    def stopped_flag() -> bool:
        """Check if operation should stop (placeholder for signal handling)."""
        return False

    def manager(self) -> QuarantineManager:
        try:
            return QuarantineManager(self.config)
        except OSError as e:
            self.error_exit(f"Cannot open quarantine area {self.config.base_dir}: {e}")

    # ---------- scan ----------

    def run_scan(self, params: ScanParams) -> ScanResult:
        command = DeduplicationCommand(excluded_dirs=[str(self.config.base_dir)])
        try:
            result = command.execute(
                params,
                progress_callback=self.progress_callback if self.verbose else None,
                stopped_flag=self.stopped_flag
            )
        except RuntimeError as e:
            self.error_exit(f"Scan failed: {e}")

        if self.verbose:
            sys.stderr.write("\n")
            print("\nScan Statistics:")
            print(result.stats.print_summary())
            for path, reason in result.stats.skipped_files:
                self.warning(f"Skipped {path}: {reason}")
        return result

    def output_results(self, result: ScanResult) -> None:
        """Print duplicate and near-duplicate groups as plain text."""
        if self.quiet:
            return

        if result.is_empty:
            print("No duplicate groups found.")
            return

        groups = result.duplicate_groups
        if groups:
            total_files = sum(len(g.files) for g in groups)
            print(f"\nFound {len(groups)} duplicate groups ({total_files} files)")
            for idx, group in enumerate(groups, 1):
                algo = group.algorithm.display_name if group.algorithm else "?"
                print(f"\n📁 Group {idx} | Size: {ConvertUtils.bytes_to_human(group.size)} "
                      f"| Files: {len(group.files)} | {algo}")
                for file in group.files:
                    print(f"   {file.path}")
            print(f"\nPotential space savings: {ConvertUtils.bytes_to_human(result.stats.space_savings)}")

        if result.similar_text_groups:
            print(f"\nFound {len(result.similar_text_groups)} groups of similar text files")
            for idx, group in enumerate(result.similar_text_groups, 1):
                print(f"\n📝 Text group {idx} | Files: {len(group)}")
                for path in group:
                    print(f"   {path}")

        if result.similar_image_groups:
            print(f"\nFound {len(result.similar_image_groups)} groups of similar images")
            for idx, group in enumerate(result.similar_image_groups, 1):
                print(f"\n🖼  Image group {idx} | Files: {len(group)}")
                for path, score in group:
                    print(f"   {path} [{ConvertUtils.percent(score)}]")

    def execute_quarantine_dupes(self, result: ScanResult, include_similar: bool, force: bool) -> None:
        """Keep the first file of every group and quarantine the rest."""
        files_to_move, _ = DuplicateService.keep_only_one_file_per_group(result.duplicate_groups)
        if include_similar:
            files_to_move += DuplicateService.extra_members(result.similar_text_groups)
            files_to_move += DuplicateService.extra_members(result.similar_image_groups)

        if not files_to_move:
            if not self.quiet:
                print("No files to quarantine.")
            return

        if not self.confirm(f"Move {len(files_to_move)} files to quarantine?", force):
            print("Quarantine cancelled by user.")
            return

        records, failures = self.manager().quarantine_many(files_to_move)
        moved_bytes = sum(r.file_size for r in records)
        if not self.quiet:
            print(f"✅ Quarantined {len(records)} files ({ConvertUtils.bytes_to_human(moved_bytes)}).")
            print("Run 'dupsafe commit' to delete them or 'dupsafe rollback' to restore them.")
        self.report_failures(failures, "quarantine")

    # ---------- quarantine commands ----------

    def cmd_quarantine(self, paths: List[str]) -> None:
        records, failures = self.manager().quarantine_many([str(Path(p).expanduser()) for p in paths])
        if not self.quiet:
            for record in records:
                print(f"   {record.original_path} -> {record.quarantine_path}")
            print(f"Quarantined {len(records)} of {len(paths)} files.")
        self.report_failures(failures, "quarantine")

    def cmd_commit(self, trash: bool, force: bool) -> None:
        manager = self.manager()
        count, total = manager.stats()
        if count == 0:
            if not self.quiet:
                print("Quarantine is empty.")
            return
        where = "the system trash" if trash else "permanent deletion"
        if not self.confirm(f"Send {count} quarantined files ({ConvertUtils.bytes_to_human(total)}) "
                            f"to {where}?", force):
            print("Commit cancelled by user.")
            return
        result = manager.commit_detailed(send_to_trash=trash)
        if not self.quiet:
            print(f"✅ Removed {result.succeeded} files.")
        self.report_batch(result, "delete")

    def cmd_rollback(self) -> None:
        result = self.manager().rollback_detailed()
        if not self.quiet:
            print(f"✅ Restored {result.succeeded} files.")
        self.report_batch(result, "restore")

    def cmd_restore(self, path: str) -> None:
        try:
            record = self.manager().restore_one(str(Path(path).expanduser()))
        except KeyError:
            self.error_exit(f"Not in quarantine: {path}")
        except FileNotFoundError as e:
            self.error_exit(f"{e}. The record was dropped.")
        except RuntimeError as e:
            self.error_exit(str(e))
        if not self.quiet:
            print(f"✅ Restored {record.original_path}")

    def cmd_recover(self, path: str) -> None:
        try:
            entry = self.manager().recover_from_log(str(Path(path).expanduser()))
        except KeyError:
            self.error_exit(f"No unresolved recovery log entry for: {path}")
        except (FileNotFoundError, RuntimeError) as e:
            self.error_exit(str(e))
        if not self.quiet:
            print(f"✅ Recovered {entry.original_path} from {entry.quarantine_path}")

    def cmd_list(self) -> None:
        records = self.manager().list()
        if not records:
            print("Quarantine is empty.")
            return
        for record in records:
            self.print_record(record)

    def cmd_stats(self) -> None:
        count, total = self.manager().stats()
        print(f"Quarantined files: {count}")
        print(f"Total size: {ConvertUtils.bytes_to_human(total)}")

    def cmd_log(self) -> None:
        entries = read_recovery_log(self.config)
        if not entries:
            print("Recovery log is empty.")
            return
        for entry in entries:
            when = ConvertUtils.timestamp_to_human(entry.timestamp)
            print(f"{when} | {entry.action.value:<11} | {entry.original_path} "
                  f"[{ConvertUtils.bytes_to_human(entry.file_size)}]")

    # ---------- output helpers ----------

    @staticmethod
    def print_record(record: QuarantineRecord) -> None:
        when = ConvertUtils.timestamp_to_human(record.moved_at)
        print(f"{when} | {ConvertUtils.bytes_to_human(record.file_size):>10} | {record.original_path}")

    def report_batch(self, result: BatchResult, verb: str) -> None:
        for original in result.missing:
            self.warning(f"Quarantined copy of {original} was missing; record dropped")
        self.report_failures(result.failed, verb)

    def report_failures(self, failures, verb: str) -> None:
        if not failures:
            return
        print(f"\n⚠️  Failed to {verb} {len(failures)} file(s):", file=sys.stderr)
        for path, error in failures[:5]:
            print(f"  • {os.path.basename(path)}: {error}", file=sys.stderr)
        if len(failures) > 5:
            print(f"  ...and {len(failures) - 5} more files", file=sys.stderr)
        sys.exit(1)

    def confirm(self, question: str, force: bool) -> bool:
        if force:
            return True
        if not sys.stdin.isatty() or not sys.stdout.isatty():
            self.error_exit(
                "Cannot request interactive confirmation in non-interactive session. "
                "Use --force to proceed."
            )
        response = input(f"{question} [y/N]: ")
        return response.strip().lower() in ("y", "yes")

    def warning(self, message: str) -> None:
        """Print a warning message to stderr."""
        if not self.quiet:
            print(f"⚠️  {message}", file=sys.stderr)

    @staticmethod
    def error_exit(message: str, code: int = 1) -> NoReturn:
        """Print error and exit."""
        print(f"❌ Error: {message}", file=sys.stderr)
        sys.exit(code)

    def run(self, argv: Optional[List[str]] = None) -> None:
        """Main entry point."""
        args = self.parse_args(argv)
        self.verbose = args.verbose
        self.quiet = args.quiet
        if self.verbose:
            logging.getLogger("dupsafe").setLevel(logging.WARNING)

        self.config = QuarantineConfig(base_dir=Path(args.base_dir)) if args.base_dir else QuarantineConfig()
        self.validate_args(args)

        if args.command == "scan":
            params = self.create_params(args)
            if not self.quiet:
                print(f"Scanning {len(params.paths)} path(s)...")
            result = self.run_scan(params)
            self.output_results(result)
            if args.quarantine_dupes:
                self.execute_quarantine_dupes(result, args.include_similar, args.force)
        elif args.command == "quarantine":
            self.cmd_quarantine(args.paths)
        elif args.command == "commit":
            self.cmd_commit(args.trash, args.force)
        elif args.command == "rollback":
            self.cmd_rollback()
        elif args.command == "restore":
            self.cmd_restore(args.path)
        elif args.command == "recover":
            self.cmd_recover(args.path)
        elif args.command == "list":
            self.cmd_list()
        elif args.command == "stats":
            self.cmd_stats()
        elif args.command == "log":
            self.cmd_log()

        if self.verbose:
            print(f"\n✅ Completed in {time.time() - self.start_time:.2f} seconds")


def main() -> None:
    """Application entry point."""
    app = CLIApplication()
    try:
        app.run()
    except KeyboardInterrupt:
        print("\n⚠️  Operation cancelled by user (Ctrl+C)")
        sys.exit(130)
    except Exception as e:
        if os.environ.get("DEBUG"):
            raise
        print(f"❌ Unexpected error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
