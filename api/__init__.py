"""
FastAPI REST API for the Bookshelf service.

This package provides:
- Book create, list, update and delete endpoints
- Author creation
- MongoDB-backed stores with author reference expansion
"""
