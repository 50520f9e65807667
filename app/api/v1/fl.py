from typing import List, Union
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_session
from app.models.fl_model_update import FLModelUpdate
from app.schemas.fl import (
    FLActionRequest,
    GlobalModelRead,
    GlobalModelResponse,
    ModelUpdateIn,
    SubmitUpdateResponse,
)
from app.services.fl_service import (
    handle_model_request,
    handle_submission,
    model_history,
)

router = APIRouter(prefix="/fl", tags=["federated-learning"])


async def _submit(session: AsyncSession, course_id: str, payload: ModelUpdateIn) -> SubmitUpdateResponse:
    update = FLModelUpdate(
        student_id=payload.student_id,
        course_id=course_id,
        weights=payload.weights,
        biases=payload.biases,
        accuracy=payload.accuracy,
        privacy_budget_used=payload.privacy_budget,
    )
    result = await handle_submission(session, update)
    return SubmitUpdateResponse(
        aggregated=result.aggregated,
        global_model=(
            GlobalModelRead.from_record(result.new_version)
            if result.new_version else None
        ),
        aggregation_error=result.aggregation_error,
    )


async def _get_model(session: AsyncSession, course_id: str) -> GlobalModelResponse:
    model = await handle_model_request(session, course_id)
    if not model:
        return GlobalModelResponse(model=None, message="No global model available yet")
    return GlobalModelResponse(model=GlobalModelRead.from_record(model))


# -----------------------------
# Action endpoint
# -----------------------------

@router.post("", response_model=None)
async def api_fl_action(
    payload: FLActionRequest,
    session: AsyncSession = Depends(get_session)
) -> Union[SubmitUpdateResponse, GlobalModelResponse]:
    """
    Single entry point used by the web client, discriminated on ``action``.
    """
    if payload.action == "submit_update":
        if payload.model_update is None:
            raise HTTPException(status_code=400, detail="modelUpdate is required for submit_update")
        return await _submit(session, payload.course_id, payload.model_update)
    return await _get_model(session, payload.course_id)


# -----------------------------
# Course endpoints
# -----------------------------

@router.post("/courses/{course_id}/updates", response_model=SubmitUpdateResponse)
async def api_submit_update(
    course_id: str,
    payload: ModelUpdateIn,
    session: AsyncSession = Depends(get_session)
):
    return await _submit(session, course_id, payload)


@router.get("/courses/{course_id}/model", response_model=GlobalModelResponse)
async def api_get_global_model(course_id: str, session: AsyncSession = Depends(get_session)):
    return await _get_model(session, course_id)


@router.get("/courses/{course_id}/models", response_model=List[GlobalModelRead])
async def api_list_global_models(
    course_id: str,
    limit: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_session)
):
    models = await model_history(session, course_id, limit)
    return [GlobalModelRead.from_record(m) for m in models]
