"""
Transport implementations for the loan processing service.

Supports:
- HTTP/REST (FastAPI)
"""
