"""Infrastructure layer for drive app.

This package contains integrations with external systems:
- Blob store backends (local filesystem, S3-compatible object storage)
- Name, path and content-type helpers

Keep infrastructure concerns separate from business logic.
"""
