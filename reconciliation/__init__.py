"""
Staging-to-facts reconciliation pipeline.

Modules:
    validator: Pure business-rule validation of staging rows
    retry: Validation passes, quarantine, bounded retries, corrections
    loaders: Atomic load of valid staging rows into orders and lines
    order_totals: Order line writer and order-total recompute hook
    fact_merge: Incremental merge of the derived fact table
    run_tracker: Run log and error log bookkeeping
    runner: Orchestrates one full run
    scheduler: APScheduler integration for periodic runs
    intake: CSV intake into the staging buffer

Architecture:
    staging_orders -> validator -> (valid) -> loader -> orders/order_lines
                          |                                   |
                   (invalid) quarantine            fact merge -> fact_order_lines
                          |
                   correction -> retry

Usage:
    from reconciliation.runner import ReconciliationRunner

    async with async_session_maker() as session:
        result = await ReconciliationRunner(session).run()
        print(f"Loaded {result.load.rows_loaded} rows")
"""

__all__ = [
    "validator",
    "retry",
    "loaders",
    "order_totals",
    "fact_merge",
    "run_tracker",
    "runner",
    "scheduler",
    "intake",
]
