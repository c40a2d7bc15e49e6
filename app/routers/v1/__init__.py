"""v1 router package: all /api/v1/* endpoints live here.

Files:
  uploads.py    - CSV bulk uploads and upload batch history
  templates.py  - CSV template downloads
  deps.py       - tenant and ingestion context dependencies

Rule: Routers only handle HTTP (request parsing, response shaping).
      All business logic delegates to app/services/.
"""
