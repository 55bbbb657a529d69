"""Bearer-token authentication."""
