"""Storage provider clients."""

from infrastructure.provider.cloudinary_client import CloudinaryClient, sign_params

__all__ = ["CloudinaryClient", "sign_params"]
