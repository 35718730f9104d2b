"""Schemas for image upload endpoints."""

from pydantic import Field

from app.schemas.common import CamelModel


class ImageInfo(CamelModel):
    filename: str
    url: str


class ValidatedImage(CamelModel):
    """Metadata of an upload that passed validation; nothing is written to disk."""

    original_name: str
    mimetype: str
    size: int = Field(..., ge=0)
    extension: str


class SupportedFormats(CamelModel):
    image_types: list[str]
    extensions: list[str]
    max_size: int
    max_size_formatted: str
    grain_types: list[str]
