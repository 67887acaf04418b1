"""Read and write GPS/timestamp EXIF metadata."""

from .errors import GeotagError, InvalidCoordinatesError, MetadataReadError
from .extractor import (
    ExifTimestamp,
    GeoCoordinate,
    MetadataResult,
    extract_exif_metadata,
    extract_gps_from_image,
    get_image_timestamp,
    has_gps_coordinates,
)
from .files import (
    SUPPORTED_EXTENSIONS,
    create_backup,
    get_file_stats,
    is_supported_image_file,
    is_valid_timestamp,
)
from .writer import write_gps_to_exif

__all__ = [
    "ExifTimestamp",
    "GeoCoordinate",
    "GeotagError",
    "InvalidCoordinatesError",
    "MetadataReadError",
    "MetadataResult",
    "SUPPORTED_EXTENSIONS",
    "create_backup",
    "extract_exif_metadata",
    "extract_gps_from_image",
    "get_file_stats",
    "get_image_timestamp",
    "has_gps_coordinates",
    "is_supported_image_file",
    "is_valid_timestamp",
    "write_gps_to_exif",
]
