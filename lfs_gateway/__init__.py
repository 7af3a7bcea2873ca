"""Git LFS Batch API gateway issuing presigned S3 URLs."""

__version__ = "1.0.0"
