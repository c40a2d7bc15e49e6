"""Services package: all business logic lives here, never in routers.

Files:
  csv_parser.py     - CSV text -> header + 1-indexed raw rows; error report CSV
  validation.py     - pure row rules per upload kind, then typed row coercion
  normalization.py  - attribution, customer redaction, policy type keywords
  resolver.py       - text references -> ids, with placeholder insurers/products
  writer.py         - atomic policy + detail writes, product create/update
  ingestion.py      - batch orchestrator, summary, error report, batch history
  templates.py      - downloadable CSV templates per upload kind
  storage.py        - object storage interface + filesystem implementation
  context.py        - IngestContext (tenant, session, storage)

Rule: routers call services, services call repositories, repositories call the DB.
      No SQLAlchemy queries in routers. No FastAPI imports in services.
"""
