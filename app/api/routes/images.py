"""Image endpoints: upload a grain-sample image and analyse it, validate uploads, manage stored files."""

from functools import partial
from typing import Annotated

import anyio
from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session

from app.api.deps import get_grain_analyzer
from app.api.routes.auth import get_current_user
from app.core.config import get_settings
from app.core.database import get_db
from app.core.errors import NotFoundError, ValidationError
from app.schemas.analysis import AnalysisResult, DefectsBreakdown
from app.schemas.auth import CurrentUser
from app.schemas.common import MessageResponse
from app.schemas.image import ImageInfo, SupportedFormats, ValidatedImage
from app.services import analysis_service
from app.services.grain_analysis import (
    GRAIN_TYPES,
    GrainAnalyzer,
    InvalidGrainTypeError,
    is_valid_grain_type,
)
from app.services.image_storage import (
    ALLOWED_IMAGE_EXTENSIONS,
    ImageValidationError,
    delete_image,
    is_safe_filename,
    public_url,
    read_upload,
    store_image,
    validate_image,
)

router = APIRouter()


async def _read_image(image: UploadFile | None) -> bytes:
    """Read the multipart 'image' part, rejecting it once it passes MAX_FILE_SIZE."""
    if image is None or not image.filename:
        raise ValidationError("No image was uploaded.", code="NO_FILE_UPLOADED")
    try:
        return await read_upload(image, get_settings())
    except ImageValidationError as e:
        raise ValidationError(e.message, code=e.code) from e


def _store_and_analyze(
    db: Session,
    analyzer: GrainAnalyzer,
    user_id: str,
    image: UploadFile,
    content: bytes,
    grain_type: str,
) -> AnalysisResult:
    """Disk write, analysis and commit; runs in a worker thread."""
    settings = get_settings()
    try:
        stored = store_image(content, image.filename, image.content_type, settings)
    except ImageValidationError as e:
        raise ValidationError(e.message, code=e.code) from e
    try:
        analysis = analysis_service.process_image(
            db,
            analyzer,
            user_id=user_id,
            image_url=stored.url,
            grain_type=grain_type,
        )
    except InvalidGrainTypeError as e:
        delete_image(stored.filename, settings)
        raise ValidationError(str(e)) from e

    return AnalysisResult(
        analysis_id=analysis.id,
        grain_type=analysis.grain_type,
        total_grains=analysis.total_grains,
        healthy_grains=analysis.healthy_grains,
        defective_grains=analysis.defective_grains,
        defects_breakdown=DefectsBreakdown.model_validate(analysis.defects_breakdown),
        purity_percentage=analysis.purity_percentage,
        impurity_percentage=analysis.impurity_percentage,
        image_url=analysis.image_url or "",
    )


@router.post("/process", response_model=AnalysisResult, status_code=status.HTTP_201_CREATED)
async def process_image(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    analyzer: Annotated[GrainAnalyzer, Depends(get_grain_analyzer)],
    image: Annotated[UploadFile | None, File()] = None,
    grain_type: Annotated[str | None, Form(alias="grainType")] = None,
) -> AnalysisResult:
    """
    Upload a grain-sample image (multipart field `image`, JPEG or PNG, max 5 MB)
    with a `grainType`, run the analysis and store the result.
    """
    if not grain_type:
        raise ValidationError("Grain type is required.")
    if not is_valid_grain_type(grain_type):
        raise ValidationError(f"Invalid grain type. Allowed: {', '.join(GRAIN_TYPES)}")

    content = await _read_image(image)
    return await anyio.to_thread.run_sync(
        partial(_store_and_analyze, db, analyzer, current_user.id, image, content, grain_type)
    )


@router.post("/validate", response_model=ValidatedImage)
async def validate_upload(
    _user: Annotated[CurrentUser, Depends(get_current_user)],
    image: Annotated[UploadFile | None, File()] = None,
) -> ValidatedImage:
    """Check an image against the upload rules without storing or analysing it."""
    content = await _read_image(image)
    try:
        extension = validate_image(image.filename, image.content_type, len(content), get_settings())
    except ImageValidationError as e:
        raise ValidationError(e.message, code=e.code) from e
    return ValidatedImage(
        original_name=image.filename,
        mimetype=(image.content_type or "").split(";")[0].strip().lower(),
        size=len(content),
        extension=extension,
    )


@router.get("/formats", response_model=SupportedFormats)
def get_supported_formats(
    _user: Annotated[CurrentUser, Depends(get_current_user)],
) -> SupportedFormats:
    settings = get_settings()
    return SupportedFormats(
        image_types=settings.allowed_file_types,
        extensions=sorted(ALLOWED_IMAGE_EXTENSIONS),
        max_size=settings.MAX_FILE_SIZE,
        max_size_formatted=f"{settings.MAX_FILE_SIZE // (1024 * 1024)}MB",
        grain_types=list(GRAIN_TYPES),
    )


@router.get("/info/{filename}", response_model=ImageInfo)
def get_image_info(
    filename: str,
    _user: Annotated[CurrentUser, Depends(get_current_user)],
) -> ImageInfo:
    if not is_safe_filename(filename):
        raise ValidationError("Invalid file name.")
    return ImageInfo(filename=filename, url=public_url(filename))


@router.delete("/{filename}", response_model=MessageResponse)
def remove_image(
    filename: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    """Delete a stored image referenced by one of the caller's analyses."""
    if not is_safe_filename(filename):
        raise ValidationError("Invalid file name.")
    owned = analysis_service.find_by_image_url(db, public_url(filename), current_user.id)
    if owned is None or not delete_image(filename, get_settings()):
        raise NotFoundError("Image not found.")
    return MessageResponse(message="Image deleted.")
