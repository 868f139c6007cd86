"""Full-text search over component records stored in CouchDB."""

__version__ = "0.1.0"
