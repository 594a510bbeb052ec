"""Optional read-only status API."""
