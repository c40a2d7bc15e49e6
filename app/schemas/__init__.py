"""Pydantic schemas package.

Folder intent:
  common.py   - CamelModel base + HealthResponse (all schemas inherit CamelModel)
  rows.py     - typed upload row schemas (policy by line of business, product, product update)
  upload.py   - pipeline value objects and upload API responses
"""
