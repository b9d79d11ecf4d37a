import logging

from inkbook import db
from inkbook.config import CreditPlan, get_settings
from inkbook.errors import NotFoundError, PaymentRequiredError
from inkbook.models.credits import Article, DesignRequest, DesignResponse, PurchaseResponse
from inkbook.models.notifications import Notification
from inkbook.models.users import Role, Session
from inkbook.producers.booking_producer import publish_notifications
from inkbook.services import generation
from inkbook.services.common import db_errors, require_role
from inkbook.services.payments import process_payment

logger = logging.getLogger(__name__)


def list_plans() -> list[CreditPlan]:
    return list(get_settings().credits.plans)


async def purchase_credits(session: Session, plan_id: str) -> PurchaseResponse:
    settings = get_settings()
    plan = settings.credits.get_plan(plan_id)
    if plan is None:
        raise NotFoundError(detail="Unknown credit plan", resource_type="plan", resource_id=plan_id)

    result = await process_payment(plan.price, session.email, f"{plan.credits} design credits ({plan.id})")
    currency = settings.payment.currency
    with db_errors("record purchase"):
        if not result.success:
            await db.payments_record(session.user_id, "credits", plan.price, currency, "failed")
            raise PaymentRequiredError(detail=result.error or "Payment declined", plan_id=plan_id)
        async with db.transaction() as conn:
            if await db.users_get(session.user_id, conn=conn) is None:
                await db.users_upsert(session.user_id, session.email, "", session.role.value, conn=conn)
            balance = await db.users_add_credits(session.user_id, plan.credits, conn=conn)
            await db.payments_record(session.user_id, "credits", plan.price, currency, "succeeded",
                                     transaction_id=result.transaction_id, conn=conn)
            rows = await db.notifications_insert_many(
                [{
                    "user_id": session.user_id,
                    "type": "payment_update",
                    "title": "Credits added",
                    "message": f"{plan.credits} credits were added to your account.",
                    "data": {"plan_id": plan.id, "transaction_id": result.transaction_id},
                }],
                conn=conn,
            )
    logger.info("User %s bought plan %s (+%d credits)", session.user_id, plan.id, plan.credits)
    await publish_notifications([Notification.model_validate(r) for r in rows])
    return PurchaseResponse(
        plan_id=plan.id,
        credits_added=plan.credits,
        credits=balance or 0,
        transaction_id=result.transaction_id or "",
    )


async def generate_design(session: Session, req: DesignRequest) -> DesignResponse:
    cost = get_settings().credits.design_cost
    with db_errors("load user"):
        user = await db.users_get(session.user_id)
    if user is None or user["credits"] < cost:
        raise PaymentRequiredError(
            detail=f"Generating a design costs {cost} credit(s)",
            credits=user["credits"] if user else 0,
            cost=cost,
        )

    image_url = await generation.generate_design_image(req.prompt, req.style)

    # Balance may have been spent concurrently while the image was generated
    with db_errors("charge credits"):
        balance = await db.users_add_credits(session.user_id, -cost)
    if balance is None:
        raise PaymentRequiredError(detail="Not enough credits", cost=cost)
    logger.info("User %s generated a %s design; %d credits left", session.user_id, req.style, balance)
    return DesignResponse(image_url=image_url, credits=balance)


async def generate_blog_article(session: Session, topic: str) -> Article:
    require_role(session, Role.ADMIN)
    return await generation.generate_article(topic)
