"""Prompt templates for marketing copy generation."""

import json
from typing import List, Optional

from pydantic import BaseModel

from catalog_pipeline.ingest.base import ProductDetail


MARKETING_COPY_SYSTEM_PROMPT = """
You write concise e-commerce marketing copy in English for a corporate gifting store.
Return a JSON object with exactly these keys:
- seoTitle
- productTitle
- shortDescription
- longDescription
- metaDescription

Rules:
- Never include supplier product codes (such as BP96) in seoTitle or productTitle.
- seoTitle follows the pattern "<Product> - Corporate Gifts Singapore - Smilie".
- longDescription is written for companies buying gifts for staff, clients or events.
- Skip specs that mean nothing to that audience (for example "600D").
- Base the copy on the provided specifications and image URL. Keep the tone
  professional, highlight benefits, do not repeat specs verbatim and never mention
  missing information.
- shortDescription: at most 35 words. longDescription: at most 80 words.
  metaDescription: at most 160 characters.

Example:
{
  "seoTitle": "Large Waterproof Business Backpack - Corporate Gifts Singapore - Smilie",
  "productTitle": "Summit Explorer Waterproof Backpack",
  "shortDescription": "Durable backpack with waterproof design and spacious compartments.",
  "longDescription": "With a water-resistant build and multi-functional compartments, this backpack suits daily commutes, outdoor activities and business travel. A practical gift for companies that want style and long-lasting usability.",
  "metaDescription": "Spacious waterproof backpack in Singapore. Durable and ideal for staff gifts or outdoor corporate events."
}
"""


class MarketingCopyPrompt(BaseModel):
    """Product context sent to the copy service."""

    product_code: str
    product_name: Optional[str] = None
    image_url: Optional[str] = None
    material: Optional[str] = None
    dimension: Optional[str] = None
    weight: Optional[str] = None
    finish: Optional[str] = None
    function: Optional[str] = None
    printing_methods: Optional[List[str]] = None

    @classmethod
    def from_detail(
        cls,
        code: str,
        detail: Optional[ProductDetail] = None,
        image_url: Optional[str] = None,
    ) -> "MarketingCopyPrompt":
        if detail is None:
            return cls(product_code=code, image_url=image_url)
        return cls(
            product_code=code,
            product_name=detail.display_name,
            image_url=image_url,
            material=detail.material,
            dimension=detail.dimension,
            weight=detail.weight,
            finish=detail.finish,
            function=detail.function,
            printing_methods=detail.printing_methods or None,
        )

    def to_prompt(self) -> str:
        """Convert to prompt text."""
        return f"Product context: {json.dumps(self.model_dump(), ensure_ascii=False)}"
