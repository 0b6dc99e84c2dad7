"""Marketing copy generation through the OpenAI chat completions API."""

import json
import logging
from typing import Any, Mapping, Optional, Union

from openai import AsyncOpenAI, OpenAIError

from catalog_pipeline.ai.prompts import MARKETING_COPY_SYSTEM_PROMPT, MarketingCopyPrompt
from catalog_pipeline.config import settings
from catalog_pipeline.ingest.base import MarketingCopy, ProductDetail

logger = logging.getLogger(__name__)

# Service response key -> MarketingCopy field
RESPONSE_KEYS = {
    "seoTitle": "seo_title",
    "productTitle": "product_title",
    "shortDescription": "short_description",
    "longDescription": "long_description",
    "metaDescription": "meta_description",
}


class CopyGenerationError(Exception):
    """The copy service failed or returned something unusable."""

    def __init__(self, code: str, reason: str):
        self.code = code
        self.reason = reason
        super().__init__(f"Marketing copy generation failed for {code}: {reason}")


def _capitalize_first(text: str) -> str:
    return text[:1].upper() + text[1:]


def fallback_copy(code: str, detail: Optional[ProductDetail] = None) -> MarketingCopy:
    """
    Deterministic copy templated from the code and known spec fields.

    Args:
        code: Product code
        detail: Optional specification detail (name, function, material)

    Returns:
        MarketingCopy with all five fields filled
    """
    name = detail.display_name if detail else None
    function = detail.function if detail else None
    material = detail.material if detail else None

    if function:
        short = f"Experience the {code}, designed for {function.lower()}."
    else:
        short = f"Discover the {code}, crafted for dependable daily use."

    material_text = f"Constructed with {material}, " if material else ""
    function_text = (
        f"{function} for everyday convenience."
        if function
        else "ideal for busy professionals and students alike."
    )
    long = _capitalize_first(f"{material_text}the {code} delivers reliable performance and {function_text}")

    if material:
        meta = f"Shop the {code} made from {material} for durable, everyday versatility."
    else:
        meta = f"Shop the {code} for reliable performance and everyday versatility."

    return MarketingCopy(
        seo_title=f"{name} | {code}" if name else f"Premium {code} Product",
        product_title=name or f"Product {code}",
        short_description=short,
        long_description=long,
        meta_description=meta,
    )


def complete_copy(
    copy: Union[MarketingCopy, Mapping[str, Any], None],
    code: str,
    detail: Optional[ProductDetail] = None,
) -> MarketingCopy:
    """
    Fill every blank field of a (possibly partial) copy from the fallback.

    Args:
        copy: MarketingCopy, raw service response (camelCase keys) or None
        code: Product code
        detail: Optional specification detail

    Returns:
        MarketingCopy whose five fields are all non-empty
    """
    fallback = fallback_copy(code, detail)

    if copy is None:
        return fallback
    if isinstance(copy, MarketingCopy):
        values = copy.model_dump()
    else:
        values = {field: copy.get(key) for key, field in RESPONSE_KEYS.items()}

    completed = {}
    for field in RESPONSE_KEYS.values():
        value = values.get(field)
        if isinstance(value, str) and value.strip():
            completed[field] = value.strip()
        else:
            completed[field] = getattr(fallback, field)
    return MarketingCopy(**completed)


class MarketingCopyGenerator:
    """
    Stateless client for the marketing copy service.

    Features:
    - One chat completion per product, JSON response format
    - Skips the call entirely when no API key is configured
    - Fills blank response fields with deterministic fallback text
    """

    _missing_key_logged = False

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        raise_errors: Optional[bool] = None,
    ):
        """
        Initialize the generator.

        Args:
            api_key: OpenAI API key (defaults to settings.openai_api_key)
            client: Preconfigured AsyncOpenAI-compatible client
            model: Model name (defaults to settings.llm_model)
            raise_errors: Raise CopyGenerationError on service failures instead
                          of returning None (defaults to settings.copy_errors_raise)
        """
        self.api_key = settings.openai_api_key if api_key is None else api_key
        self.model = model or settings.llm_model
        self.raise_errors = settings.copy_errors_raise if raise_errors is None else raise_errors
        self._client = client

    @property
    def enabled(self) -> bool:
        return self._client is not None or bool(self.api_key)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, timeout=settings.llm_timeout_seconds)
        return self._client

    def _failed(self, error: CopyGenerationError) -> None:
        if self.raise_errors:
            raise error
        logger.warning(str(error))

    async def generate(
        self,
        code: str,
        detail: Optional[ProductDetail] = None,
        image_url: Optional[str] = None,
    ) -> Optional[MarketingCopy]:
        """
        Request marketing copy for one product.

        Args:
            code: Product code
            detail: Known specification detail
            image_url: Primary product image

        Returns:
            Complete MarketingCopy, or None when the service is not configured
            (or failed and raise_errors is off)

        Raises:
            CopyGenerationError: Service failure while raise_errors is on
        """
        if not self.enabled:
            if not MarketingCopyGenerator._missing_key_logged:
                logger.warning("OPENAI_API_KEY not set. Skipping marketing copy generation.")
                MarketingCopyGenerator._missing_key_logged = True
            return None

        prompt = MarketingCopyPrompt.from_detail(code, detail, image_url)
        logger.info(f"Generating marketing copy for {code} using image {image_url or 'none'}")

        try:
            response = await self._get_client().chat.completions.create(
                model=self.model,
                temperature=settings.llm_temperature,
                max_tokens=settings.llm_max_tokens,
                messages=[
                    {"role": "system", "content": MARKETING_COPY_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt.to_prompt()},
                ],
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            self._failed(CopyGenerationError(code, f"{type(e).__name__}: {e}"))
            return None

        content = response.choices[0].message.content if response.choices else None
        if not content:
            self._failed(CopyGenerationError(code, "response missing content"))
            return None

        try:
            parsed = json.loads(content)
        except json.JSONDecodeError:
            self._failed(CopyGenerationError(code, f"unparsable JSON response: {content[:200]}"))
            return None

        if not isinstance(parsed, dict):
            self._failed(CopyGenerationError(code, "response is not a JSON object"))
            return None

        logger.info(f"Generated marketing copy for {code}")
        return complete_copy(parsed, code, detail)
