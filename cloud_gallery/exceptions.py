"""
Custom exception hierarchy for the cloud gallery.

Remote adapters raise these so the pipeline can recover at well-defined
boundaries instead of catching arbitrary errors.
"""


class CloudGalleryError(Exception):
    """Base exception for all cloud gallery errors."""
    pass


class ConfigError(CloudGalleryError):
    """Raised when the INIT payload cannot be turned into a configuration."""
    pass


class RemoteStorageError(CloudGalleryError):
    """Raised when a call to the remote storage provider fails."""
    pass


class AuthenticationError(RemoteStorageError):
    """Raised when the provider rejects our credentials and no refresh is possible."""
    pass


class MetadataLookupError(RemoteStorageError):
    """Raised when media metadata cannot be fetched for a file."""
    pass


class ThumbnailBatchError(RemoteStorageError):
    """Raised when a whole thumbnail batch request fails."""
    pass


class CacheWriteError(CloudGalleryError):
    """Raised when the local preview cache cannot be prepared."""
    pass
