"""Infrastructure adapters for the loan processing service."""
