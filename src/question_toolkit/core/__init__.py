"""Core data models, record validation and serialization."""
