"""bucketfs: treat an S3-compatible bucket as a hierarchical filesystem."""

__version__ = "0.1.0"
