"""
import historical records into the registry

usage:
    nightshift-import list data/legacy.txt
    nightshift-import csv data/legacy.csv
"""
import argparse
import sys

from nightshift.core.db import engine, init_db
from nightshift.core.logging_config import configure_logging, get_logger
from nightshift.services.legacy_import import import_filename_list, import_metadata_csv
from nightshift.services.registry import Registry

logger = get_logger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="import legacy records into the registry")
    parser.add_argument("mode", choices=["list", "csv"], help="plain filename list or metadata csv")
    parser.add_argument("path", type=str, help="input file path")
    args = parser.parse_args(argv)

    configure_logging()

    try:
        init_db()
    except Exception as e:
        logger.error(f"failed to init database: {e}")
        return 1

    registry = Registry(engine)
    try:
        with open(args.path, "r", encoding="utf-8", newline="") as f:
            if args.mode == "list":
                report = import_filename_list(registry, f)
            else:
                report = import_metadata_csv(registry, f)
    except FileNotFoundError:
        logger.error(f"input file not found: {args.path}")
        return 1

    print(f"\nimport complete!")
    print(f"  imported: {report.imported}")
    print(f"  updated:  {report.updated}")
    print(f"  skipped:  {report.skipped}")
    print(f"  failed:   {len(report.failed)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
