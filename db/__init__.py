"""Database schema tooling."""
