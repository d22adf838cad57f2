"""
Legal risk diagnosis routes.
"""

import traceback

import structlog
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from legal_graphrag.config import Settings, get_settings
from legal_graphrag.models.base import utc_now_iso
from legal_graphrag.models.diagnosis import DiagnosisInput, DiagnosisResult
from legal_graphrag.services.diagnosis import DiagnosisService, get_diagnosis_service

logger = structlog.get_logger(__name__)
router = APIRouter()

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


@router.post("/analyze", response_model=DiagnosisResult)
async def analyze(
    data: DiagnosisInput,
    service: DiagnosisService = Depends(get_diagnosis_service),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """
    Diagnose the legal risks of an AI application.

    The ``X-Result-Source`` header tells whether the LLM answered (``live``)
    or the rule engine was used (``fallback``).
    """
    if not data.app_description:
        raise HTTPException(status_code=400, detail="アプリケーションの概要は必須です")

    try:
        outcome = await service.diagnose(data)
    except Exception as e:
        logger.error("diagnosis_failed", error=str(e))
        raise HTTPException(
            status_code=500,
            detail={
                "error": "診断の実行に失敗しました",
                "details": str(e) or "不明なエラー",
                "stack": traceback.format_exc() if settings.is_development else None,
                "timestamp": utc_now_iso(),
            },
        )

    return JSONResponse(
        content=outcome.value.to_json_dict(),
        headers={**NO_STORE_HEADERS, "X-Result-Source": outcome.source.value},
    )
