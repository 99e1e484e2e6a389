"""api/ -- JSON REST surface for ReelGuard (FastAPI)."""
