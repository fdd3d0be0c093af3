"""Column analysis API endpoints."""
from fastapi import APIRouter, Depends

from ingestion.api.deps import Owner, get_owner, get_pipeline
from ingestion.schemas.mapping import AnalysisPreviewResponse, AnalysisResponse
from ingestion.services.pipeline import IngestionPipeline

router = APIRouter(prefix="/api/data-ingestion", tags=["analyze"])


@router.post("/analyze/{file_id}", response_model=AnalysisResponse)
def analyze_file(
    file_id: str,
    owner: Owner = Depends(get_owner),
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    """
    Detect the entity type and suggest a standard field for every column.

    Suggestions are stored unconfirmed and the file moves to mapping_required.
    """
    return pipeline.analyze(file_id, owner.company_id).to_dict()


@router.get("/analyze/{file_id}", response_model=AnalysisPreviewResponse)
def get_analysis(
    file_id: str,
    owner: Owner = Depends(get_owner),
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    """Stored suggestions and the first rows of the file."""
    return pipeline.preview(file_id, owner.company_id)
