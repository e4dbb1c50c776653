#!/usr/bin/env python
"""Create working config files from the checked-in samples and check them.

Usage:
    python config.py          # Copy samples that have no working copy yet
    python config.py --force  # Overwrite existing working copies
    python config.py --check  # Report routing gaps in directory.yaml
"""

import argparse
import shutil
import sys
from pathlib import Path

script_dir = Path(__file__).parent.resolve()
sys.path.insert(0, str(script_dir / "src"))

# sample -> working copy
CONFIG_FILES = {
    "config.sample.yaml": "config.yaml",
    "sample_directory.yaml": "directory.yaml",
    "sample_items.yaml": "items.yaml",
}


def init_files(force: bool) -> None:
    for sample, target in CONFIG_FILES.items():
        sample_path = script_dir / sample
        target_path = script_dir / target

        if not sample_path.exists():
            print(f"  skip: {sample} (sample not found)")
            continue

        existed = target_path.exists()
        if existed and not force:
            print(f"  skip: {target} (already exists, use --force to overwrite)")
            continue

        shutil.copy(sample_path, target_path)
        print(f"  {'overwrite' if existed else 'create'}: {target} <- {sample}")


def check_files(config_path: Path) -> int:
    """Load the config and its directory and print any routing gaps."""
    from lostfound_svc.config import Config
    from lostfound_svc.directory.loader import load_directory_from_yaml
    from lostfound_svc.workflow.checks import check_directory

    config = Config.from_yaml(str(config_path)) if config_path.exists() else Config()
    directory_path = script_dir / config.directory.definition_file
    if not directory_path.exists():
        print(f"  missing: {directory_path.name} (run python config.py first)")
        return 1

    problems = check_directory(load_directory_from_yaml(directory_path), config.policy)
    for problem in problems:
        print(f"  problem: {problem}")
    print(f"  {len(problems)} problem(s) in {directory_path.name}")
    return 1 if problems else 0


def main():
    parser = argparse.ArgumentParser(description="Create config files from samples")
    parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Overwrite existing config files"
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Check directory.yaml against the approval policy in config.yaml"
    )
    args = parser.parse_args()

    if args.check:
        print("Checking directory...")
        sys.exit(check_files(script_dir / "config.yaml"))

    print("Initializing config files...")
    init_files(args.force)
    print("Done.")


if __name__ == "__main__":
    main()
