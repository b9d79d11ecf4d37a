from fastapi import APIRouter

from inkbook.config import CreditPlan
from inkbook.dependencies import CurrentSession
from inkbook.models.credits import (
    Article,
    ArticleRequest,
    DesignRequest,
    DesignResponse,
    PurchaseRequest,
    PurchaseResponse,
)
from inkbook.services import credits

router = APIRouter(tags=["credits"])


@router.get("/credits/plans", response_model=list[CreditPlan])
async def list_plans() -> list[CreditPlan]:
    return credits.list_plans()


@router.post("/credits/purchase", response_model=PurchaseResponse)
async def purchase(body: PurchaseRequest, session: CurrentSession) -> PurchaseResponse:
    return await credits.purchase_credits(session, body.plan_id)


@router.post("/designs/generate", response_model=DesignResponse)
async def generate_design(body: DesignRequest, session: CurrentSession) -> DesignResponse:
    return await credits.generate_design(session, body)


@router.post("/blog/articles/generate", response_model=Article)
async def generate_article(body: ArticleRequest, session: CurrentSession) -> Article:
    return await credits.generate_blog_article(session, body.topic)
