#!/usr/bin/env python3
"""
Stock alert scan for cron.

Creates or refreshes StockAlert records for materials that are low, critical
or out of stock.

Usage:
    python scripts/check_stock_alerts.py
    python scripts/check_stock_alerts.py --tenant <uuid> --dry-run
"""
import argparse
import logging
import sys
from pathlib import Path
from uuid import UUID

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from bomkit.core.config import get_settings
from bomkit.db.session import SessionLocal
from bomkit.jobs.alert_scan import run_alert_scan


def main() -> int:
    parser = argparse.ArgumentParser(description="Scan tenants for low stock and record alerts.")
    parser.add_argument("--tenant", type=UUID, action="append", dest="tenants",
                        help="Tenant id to scan (repeatable). Default: all tenants.")
    parser.add_argument("--dry-run", action="store_true", help="Report what would change without writing.")
    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    stats = run_alert_scan(SessionLocal, tenant_ids=args.tenants, dry_run=args.dry_run)

    print(f"Tenants scanned: {stats.tenants_scanned}")
    print(f"Tenants failed:  {stats.tenants_failed}")
    print(f"Alerts created:  {stats.created}")
    print(f"Alerts updated:  {stats.updated}")
    print(f"Skipped:         {stats.skipped}")
    if stats.dry_run:
        print("(dry run, nothing written)")
    for tenant_id, error in stats.failures.items():
        print(f"  FAILED {tenant_id}: {error}")

    return 1 if stats.tenants_failed else 0


if __name__ == "__main__":
    sys.exit(main())
