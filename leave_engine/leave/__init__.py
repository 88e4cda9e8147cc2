"""Leave request lifecycle."""
