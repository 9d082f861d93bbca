"""HTTP surface: routes and middleware."""
