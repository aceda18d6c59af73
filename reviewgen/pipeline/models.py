from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, model_validator

from reviewgen.llm.models import TokenUsage


class ContentType(str, Enum):
    PRODUCT_COMPARISON = "product_comparison"  # best-of roundup, several products
    DEEP_DIVE = "deep_dive"                    # single product, in depth
    INFORMATIONAL = "informational"            # outline-driven article

    @property
    def is_product_review(self) -> bool:
        return self is not ContentType.INFORMATIONAL


class Product(BaseModel):
    name: str = Field(min_length=1)
    affiliate_link: str = ""
    image_url: str | None = None


class OutlineItem(BaseModel):
    title: str = Field(min_length=1)
    body: str | None = None


class GenerationRequest(BaseModel):
    title: str = Field(min_length=1)
    content_type: ContentType
    products: list[Product] = []
    outline: list[OutlineItem] = []

    @model_validator(mode="after")
    def _check_inputs_for_type(self) -> GenerationRequest:
        if self.content_type.is_product_review and not self.products:
            raise ValueError(f"{self.content_type.value} content requires at least one product")
        if self.content_type is ContentType.INFORMATIONAL and not self.outline:
            raise ValueError("informational content requires a non-empty outline")
        return self


class ParsedSection(BaseModel):
    description: str = ""
    pros: list[str] = []
    cons: list[str] = []
    # How many entries of each list are filler rather than model output
    padded_pros: int = 0
    padded_cons: int = 0

    @property
    def shortfall(self) -> bool:
        return bool(self.padded_pros or self.padded_cons)


class ProductRecord(Product):
    description: str = ""
    pros: list[str] = []
    cons: list[str] = []


class StageCall(BaseModel):
    stage: str
    provider: str
    model: str
    input_tokens: int
    output_tokens: int
    cost: float
    duration_ms: int = 0
    estimated_usage: bool = False


class GeneratedDocument(BaseModel):
    title: str
    content_type: ContentType
    introduction: str
    sections: list[str]  # outline sections first, then product reviews
    section_titles: list[str] = []
    conclusion: str
    rendered_document: str = ""
    product_records: list[ProductRecord] = []
    usage: TokenUsage
    cost: float
    provider_used: str
    model_used: str
    elapsed_seconds: float
    word_count: int = 0
    parse_shortfalls: int = 0
    calls: list[StageCall] = []
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
