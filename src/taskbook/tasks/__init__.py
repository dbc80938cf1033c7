"""Task entity and repository."""
