"""Employee directory: the engine's read-only view of employees and departments."""
