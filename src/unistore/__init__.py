"""unistore: one storage interface over local, HTTP, S3 and B2 backends."""

__version__ = "0.1.0"
