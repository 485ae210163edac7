"""API routers: auth, posts and categories."""
