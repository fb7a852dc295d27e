"""State destinations."""

from .s3 import METADATA_FILENAME, STATE_FILENAME, S3StateStore

__all__ = ['METADATA_FILENAME', 'STATE_FILENAME', 'S3StateStore']
