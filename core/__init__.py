"""core/ -- Configuration kernel for ReelGuard. Imports nothing from the other packages."""
