from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, FastAPI, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse

from .adapters.proof_store import ShopifyProofStore
from .adapters.shopify.client import ShopifyClient, ShopifyConfig
from .adapters.shopify.stub import StubOrderSource
from .adapters.storage import SpacesConfig
from .config import settings
from .engine.models import ProofImage
from .errors import ConfigurationError
from .services.order_book import OrderBook, TransitionPending
from .services.repository import OrderRepository
from .services.summary import AnthropicSummaryGenerator, summarize_stalled_orders
from .services.transitions import StageTransitionService

app = FastAPI(title="Decolide Order Tracker", version="0.1.0")

# result.error_kind -> HTTP status
ERROR_STATUS = {
    "configuration": 503,
    "validation": 400,
    "not_found": 404,
    "upstream": 502,
}

_book: Optional[OrderBook] = None
_source = None
_proof_store = None


@app.exception_handler(ConfigurationError)
async def _configuration_error(request, exc: ConfigurationError):
    return JSONResponse(status_code=503, content={"detail": str(exc)})


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_book() -> OrderBook:
    global _book
    if _book is None:
        _book = OrderBook()
    return _book


def get_source():
    global _source
    if _source is None:
        if settings.order_source_stub:
            _source = StubOrderSource()
        else:
            _source = ShopifyClient(ShopifyConfig.from_settings(settings))
    return _source


def get_proof_store():
    global _proof_store
    if _proof_store is None:
        source = get_source()
        if isinstance(source, StubOrderSource):
            _proof_store = source
        else:
            _proof_store = ShopifyProofStore(source, SpacesConfig.from_settings(settings))
    return _proof_store


def get_repository() -> OrderRepository:
    return OrderRepository(
        get_source(),
        limit=settings.order_fetch_limit,
        placeholder_url=settings.placeholder_image_url,
        delivery_grace=timedelta(days=settings.delivery_grace_days),
    )


def get_transitions() -> StageTransitionService:
    return StageTransitionService(get_source(), get_proof_store())


def get_summary_generator() -> AnthropicSummaryGenerator:
    return AnthropicSummaryGenerator(settings.anthropic_api_key, settings.summary_model)


def stall_threshold() -> timedelta:
    return timedelta(days=settings.stall_threshold_days)


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def _refresh(book: OrderBook, repo: OrderRepository) -> None:
    result = await repo.load_orders()
    if not result.success:
        raise HTTPException(
            status_code=ERROR_STATUS.get(result.error_kind, 502),
            detail=result.error,
        )
    book.replace(result.orders)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get("/health")
async def health():
    return {"ok": True, "service": settings.service_name, "env": settings.env}


@app.get("/orders")
async def list_orders(
    book: OrderBook = Depends(get_book),
    repo: OrderRepository = Depends(get_repository),
):
    await _refresh(book, repo)
    return {"orders": [o.to_dict() for o in book.all()]}


@app.get("/orders/board")
async def order_board(
    book: OrderBook = Depends(get_book),
    repo: OrderRepository = Depends(get_repository),
    threshold: timedelta = Depends(stall_threshold),
):
    await _refresh(book, repo)
    return book.board(_now(), threshold)


@app.post("/orders/summary")
async def stalled_summary(
    book: OrderBook = Depends(get_book),
    repo: OrderRepository = Depends(get_repository),
    threshold: timedelta = Depends(stall_threshold),
):
    await _refresh(book, repo)
    now = _now()
    stalled = book.stalled(now, threshold)
    try:
        generator = get_summary_generator()
    except ConfigurationError as e:
        return {"summary": f"An error occurred while generating the summary: {e}"}
    return await summarize_stalled_orders(stalled, now, generator)


@app.post("/orders/{order_id}/advance")
async def advance_order(
    order_id: str,
    image: Optional[UploadFile] = File(default=None),
    book: OrderBook = Depends(get_book),
    repo: OrderRepository = Depends(get_repository),
    transitions: StageTransitionService = Depends(get_transitions),
):
    # Cold process or an order created since the last refresh
    if book.get(order_id) is None:
        await _refresh(book, repo)
        if book.get(order_id) is None:
            raise HTTPException(status_code=404, detail="Order not found")

    proof = None
    if image is not None:
        content = await image.read()
        if content:
            proof = ProofImage(
                content=content,
                content_type=image.content_type or "application/octet-stream",
                filename=image.filename or "proof.jpg",
            )

    try:
        book.begin(order_id)
    except TransitionPending:
        raise HTTPException(status_code=409, detail="A stage change for this order is already in progress")

    try:
        # Read under the guard so a transition that just finished is seen
        order = book.get(order_id)
        result = await transitions.advance_stage(order, proof)
    finally:
        book.end(order_id)

    if not result.success:
        raise HTTPException(
            status_code=ERROR_STATUS.get(result.error_kind, 502),
            detail=result.error,
        )

    book.apply(result.order)
    return result.to_dict()
