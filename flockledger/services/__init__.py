"""
Service layer for the flock ledger.

Each module exposes stateless functions that open their own transaction
through ``session_scope()`` unless the caller passes ``session=``:

- cycle_service: create, mortality, end, reopen, corrections, queries
- sale_service: sale events, report versions and reconciliation
- feed_service: intake recalculation and feed item lists
- stock_service: every write to a farmer's feed stock
- farmer_service, settings_service, metrics_service, notification_service

Modules are imported directly (``from flockledger.services import
cycle_service``); nothing is re-exported here.
"""
