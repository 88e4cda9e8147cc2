"""Per-employee, per-leave-type, per-year balance ledger."""
