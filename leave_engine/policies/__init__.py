"""Leave policies: one active policy per leave type."""
