"""Resumable multipart uploads to object storage through a signing control plane."""

from .config_manager.uploader_config import ServerConfig, UploaderConfig
from .event_emitter import UploadEmitter
from .exceptions import (
    ConfigurationError,
    ControlPlaneError,
    MultipartUploadError,
    TransportError,
)
from .models import PartResult, UploadRecord
from .payload import BytesPayload, FilePayload
from .uploader import MultipartUploader

__version__ = "0.3.0"

__all__ = [
    "MultipartUploader",
    "UploaderConfig",
    "ServerConfig",
    "UploadEmitter",
    "UploadRecord",
    "PartResult",
    "BytesPayload",
    "FilePayload",
    "MultipartUploadError",
    "ConfigurationError",
    "ControlPlaneError",
    "TransportError",
]
