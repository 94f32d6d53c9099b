"""
Append-only audit log of balance-changing operations.

Entries are never modified or removed. Appends must happen inside a write
region that covers ``audit``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..events.models import now_ms
from ..stores.record_store import AUDIT, RecordStore

ADMIN_FUND = "admin-fund"
DEV_FAUCET = "dev-faucet"
PURCHASE = "purchase"

AUDIT_TYPES = (ADMIN_FUND, DEV_FAUCET, PURCHASE)


class AuditLog:
    def __init__(self, store: RecordStore):
        self.store = store

    def append(self, entry_type: str, **fields: Any) -> Dict[str, Any]:
        if entry_type not in AUDIT_TYPES:
            raise ValueError(f"Unknown audit entry type: {entry_type}")
        entry = {"ts": now_ms(), "type": entry_type, **fields}
        with self.store.write_region(AUDIT):
            entries = self.store.load(AUDIT)
            entries.append(entry)
            self.store.save(AUDIT, entries)
        return entry

    def entries(self, entry_type: Optional[str] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Entries oldest first, optionally filtered; ``limit`` keeps the newest."""
        items = self.store.load(AUDIT)
        if entry_type:
            items = [e for e in items if e.get("type") == entry_type]
        if limit is not None:
            items = items[-limit:] if limit > 0 else []
        return items
