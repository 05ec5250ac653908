"""HTTP boundary: routes and dependency injection."""
