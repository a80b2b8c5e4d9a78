"""
Periodic stock alert scan.

Invoked by an external scheduler. Each tenant is scanned in its own session
so that one tenant's failure is logged and counted without stopping the
others.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from bomkit.core.config import Settings
from bomkit.db.repository import BomRepository
from bomkit.services.stock_alerts import ScanResult, StockAlertService

logger = logging.getLogger(__name__)


@dataclass
class ScanStats:
    tenants_scanned: int = 0
    tenants_failed: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    dry_run: bool = False
    results: list[ScanResult] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)  # tenant_id -> error


def run_alert_scan(
    session_factory: Callable[[], Session],
    tenant_ids: Optional[Iterable[UUID]] = None,
    dry_run: bool = False,
    settings: Optional[Settings] = None,
) -> ScanStats:
    """
    Scan the given tenants (all tenants when None) for low stock.

    Args:
        session_factory: callable returning a new Session, e.g. SessionLocal
        tenant_ids: restrict the scan to these tenants
        dry_run: compute outcomes without writing alert records

    Returns:
        ScanStats with per-tenant results and failures
    """
    if tenant_ids is None:
        db = session_factory()
        try:
            tenant_ids = BomRepository(db).list_tenant_ids()
        finally:
            db.close()

    stats = ScanStats(dry_run=dry_run)
    for tenant_id in tenant_ids:
        db = session_factory()
        try:
            result = StockAlertService(db, settings).scan_tenant(tenant_id, dry_run=dry_run)
        except Exception as e:
            logger.error(f"Alert scan failed for tenant {tenant_id}: {e}", exc_info=True)
            stats.tenants_failed += 1
            stats.failures[str(tenant_id)] = str(e)
            continue
        finally:
            db.close()

        stats.tenants_scanned += 1
        stats.created += result.created
        stats.updated += result.updated
        stats.skipped += result.skipped
        stats.results.append(result)

    logger.info(
        f"Alert scan finished: {stats.tenants_scanned} tenant(s) scanned, {stats.tenants_failed} failed, "
        f"created={stats.created} updated={stats.updated} skipped={stats.skipped}"
    )
    return stats
