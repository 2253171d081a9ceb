"""Domain models, protocols and exceptions."""
