"""Leave Engine: leave accounting service."""
