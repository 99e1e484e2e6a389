"""tests/ -- pytest suite for ReelGuard."""
