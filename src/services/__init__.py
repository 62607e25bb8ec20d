"""Mortgage backend microservices."""
