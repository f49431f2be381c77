"""Document generation endpoints."""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..context import AppContext, get_context
from ..services.document_service import GenerateDocumentsRequest, GenerateDocumentsResponse
from ..utils.errors import ERROR_CODES, GenerationDisabled

router = APIRouter()


def require_generation_enabled(ctx: AppContext = Depends(get_context)) -> None:
    """Runs before body validation so a disabled service answers 503 first."""
    if not ctx.settings.can_generate_documents():
        raise GenerationDisabled()


def _result_response(result: GenerateDocumentsResponse) -> JSONResponse:
    if result.success:
        status_code = 200
    elif result.code in (ERROR_CODES["order_not_found"], ERROR_CODES["document_not_found"]):
        status_code = 404
    else:
        status_code = 500
    return JSONResponse(status_code=status_code, content=result.to_payload())


@router.post("/generate", dependencies=[Depends(require_generation_enabled)])
async def generate_documents(body: GenerateDocumentsRequest, ctx: AppContext = Depends(get_context)):
    result = await ctx.documents.generate_documents(body)
    return _result_response(result)


@router.get("/health")
async def documents_health(ctx: AppContext = Depends(get_context)):
    health = await ctx.documents.get_health_status()
    return JSONResponse(
        status_code=200 if health.healthy else 503,
        content={"service": "document-generation", **health.to_payload()},
    )


@router.post("/retry/{document_id}", dependencies=[Depends(require_generation_enabled)])
async def retry_document(document_id: str, ctx: AppContext = Depends(get_context)):
    result = await ctx.documents.retry_document(document_id)
    return _result_response(result)


@router.get("/{order_id}")
async def get_order_documents(order_id: str, ctx: AppContext = Depends(get_context)):
    documents = await ctx.documents.get_order_documents(order_id)
    return {
        "success": True,
        "orderId": order_id,
        "documents": [doc.to_dict() for doc in documents],
        "count": len(documents),
    }
