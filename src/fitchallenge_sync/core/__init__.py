"""Core configuration, database, identity and exceptions."""
