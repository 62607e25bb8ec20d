"""
Transport implementations for the customer service.

Supports:
- HTTP/REST (FastAPI)
"""
