"""shuk: upload a file to S3 and share a time-limited link."""

__version__ = "0.4.0"
