"""Score upload and public catalog endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status

from mushee.api.dependencies import (
    CurrentUserDep,
    SessionDep,
    SettingsDep,
    get_collection_service,
    get_ingest_score_use_case,
    parse_score_id,
)
from mushee.api.schemas.scores import CatalogResponse, ScoreResponse, UploadScoreResponse
from mushee.application.services.collection_service import CollectionService
from mushee.application.use_cases.ingest_score import (
    IngestScoreRequest,
    IngestScoreUseCase,
)
from mushee.domain.entities import CatalogSortField, IngestionStatus, SortOrder

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scores", tags=["scores"])

MUSICXML_MEDIA_TYPE = "application/vnd.recordare.musicxml+xml"


# Hey future me, the upload answers 201 when we stored a brand new score and 200 when the bytes
# were already known (duplicate=true in the body). Both are successes! We read at most
# max_file_size_bytes + 1 so a 2GB upload can't eat memory - one byte over is enough for the
# use case to say "too large". The explicit commit makes a failing commit hit the exception
# handlers instead of surfacing after the response status was decided.
@router.post(
    "",
    response_model=UploadScoreResponse,
    status_code=status.HTTP_201_CREATED,
    responses={200: {"model": UploadScoreResponse, "description": "Linked existing score"}},
)
async def upload_score(
    response: Response,
    file: Annotated[UploadFile, File(description="MusicXML score file")],
    user_id: CurrentUserDep,
    session: SessionDep,
    settings: SettingsDep,
    use_case: Annotated[IngestScoreUseCase, Depends(get_ingest_score_use_case)],
) -> UploadScoreResponse:
    """Upload a MusicXML file into the caller's library."""
    data = await file.read(settings.upload.max_file_size_bytes + 1)
    outcome = await use_case.execute(
        IngestScoreRequest(
            file_bytes=data,
            filename=file.filename or "",
            user_id=user_id,
            content_type=file.content_type,
        )
    )
    await session.commit()

    if outcome.status == IngestionStatus.LINKED_EXISTING:
        response.status_code = status.HTTP_200_OK
    return UploadScoreResponse.from_outcome(outcome)


@router.get("", response_model=CatalogResponse)
async def list_catalog(
    service: Annotated[CollectionService, Depends(get_collection_service)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int | None, Query(ge=1, le=100)] = None,
    sort: CatalogSortField = CatalogSortField.TITLE,
    order: SortOrder = SortOrder.ASC,
    search: Annotated[str | None, Query(max_length=200)] = None,
) -> CatalogResponse:
    """Browse public-domain scores."""
    catalog_page = await service.list_catalog(
        page=page, limit=limit, sort=sort, order=order, search=search
    )
    return CatalogResponse.from_page(catalog_page)


@router.get("/{score_id}", response_model=ScoreResponse)
async def get_score(
    score_id: str,
    service: Annotated[CollectionService, Depends(get_collection_service)],
) -> ScoreResponse:
    """Get a single score's metadata."""
    score = await service.get_score(parse_score_id(score_id))
    return ScoreResponse.from_entity(score)


@router.get("/{score_id}/file")
async def download_score_file(
    score_id: str,
    service: Annotated[CollectionService, Depends(get_collection_service)],
) -> Response:
    """Get the raw MusicXML file for rendering."""
    score, data = await service.get_score_file(parse_score_id(score_id))
    return Response(
        content=data,
        media_type=MUSICXML_MEDIA_TYPE,
        headers={"Content-Disposition": f'inline; filename="{score.content_hash}.musicxml"'},
    )
