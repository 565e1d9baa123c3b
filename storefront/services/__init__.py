"""Backend functions built on external APIs and the proxy cache."""
