"""
Document module: the active record and everything it queries with.

This module provides:
- Document, the active record mapped to a collection, and File for GridFS uploads
- Criteria and the comparison parser used by searches
- Cursor, the lazy result set
- Validators
"""
