from pydantic import BaseModel, field_validator


class PaymentResult(BaseModel):
    success: bool
    transaction_id: str | None = None
    error: str | None = None


class PurchaseRequest(BaseModel):
    plan_id: str


class PurchaseResponse(BaseModel):
    plan_id: str
    credits_added: int
    credits: int
    transaction_id: str


class DesignRequest(BaseModel):
    prompt: str
    style: str = "traditional"

    @field_validator("prompt")
    @classmethod
    def validate_prompt(cls, v: str) -> str:
        v = v.strip()
        if not v or len(v) > 1000:
            raise ValueError("prompt must be 1-1000 characters")
        return v


class DesignResponse(BaseModel):
    image_url: str
    credits: int


class ArticleRequest(BaseModel):
    topic: str

    @field_validator("topic")
    @classmethod
    def validate_topic(cls, v: str) -> str:
        v = v.strip()
        if not v or len(v) > 300:
            raise ValueError("topic must be 1-300 characters")
        return v


class Article(BaseModel):
    title: str
    content: str
