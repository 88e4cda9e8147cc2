"""Read-only leave statistics built from approved requests."""
