from fastapi import APIRouter, Depends

from sprintpulse.api.deps import get_analysis_service
from sprintpulse.api.schemas import AnalysisRequest
from sprintpulse.services.analysis import SprintAnalysisService

router = APIRouter(prefix="/analysis", tags=["analysis"])


@router.post("/health")
def analyze_health(
    body: AnalysisRequest,
    service: SprintAnalysisService = Depends(get_analysis_service),
):
    """
    Health score, status label, risks and alerts for the posted iteration.
    """
    result = service.analyze_health(
        body.items,
        body.iteration,
        prior_score=body.prior_score,
        now=body.now,
        history=body.history_dtos(),
    )
    return result.to_dict()


@router.post("/velocity")
def predict_velocity(
    body: AnalysisRequest,
    service: SprintAnalysisService = Depends(get_analysis_service),
):
    result = service.predict(body.items, body.iteration, history=body.history_dtos(), now=body.now)
    return result.to_dict()


@router.get("/boards/{board_id}")
def analyze_board(
    board_id: str,
    service: SprintAnalysisService = Depends(get_analysis_service),
):
    return service.analyze_board(board_id).to_dict()
