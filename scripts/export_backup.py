"""
Write a JSON backup of users, records, projects and remarks.

Usage:
    python scripts/export_backup.py [--out PATH]
"""
import sys
import os
import argparse

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from ipmhub.services.backup import backup_filename, dump_backup, export_backup
from ipmhub.services.data_context import DataContext
from ipmhub.storage.factory import get_store_provider


def main():
    parser = argparse.ArgumentParser(description="Export a JSON backup")
    parser.add_argument("--out", default=None, help="Output file (default a2z_ipm_backup_<date>.json)")
    args = parser.parse_args()

    provider = get_store_provider()
    with DataContext(provider) as ctx:
        data = export_backup(ctx)
    provider.close()

    out = args.out or backup_filename()
    with open(out, "w", encoding="utf-8") as f:
        f.write(dump_backup(data))
    counts = ", ".join(f"{c}={len(data[c])}" for c in ("users", "records", "projects", "remarks"))
    print(f"Wrote {out} ({counts})")


if __name__ == "__main__":
    main()
