"""S3-compatible object store access: request signing and list/get/put."""

from statesync.s3.client import S3Client, S3Error
from statesync.s3.signing import SigV4Signer

__all__ = ["S3Client", "S3Error", "SigV4Signer"]
