"""Business logic layer for drive app.

This package holds the folder tree engine and everything built on it:
- Folder and file operations, including batch uploads
- Trash cascades (soft delete, restore, purge) and the retention sweeper
- Materialized permission grants and effective access checks
- Favourites and duplicate-name resolution

Models stay a plain data layer; blob stores live in infrastructure.
"""
