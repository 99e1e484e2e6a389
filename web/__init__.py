"""web/ -- Server-rendered login and admin pages for ReelGuard."""
