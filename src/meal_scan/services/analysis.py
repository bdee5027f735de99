"""Food analysis through a multimodal model followed by normalization."""

import base64
import json
import logging
import threading
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Protocol

from meal_scan.domain.analysis import AnalysisResult, Classification, Rejected
from meal_scan.domain.extraction import ExtractionFailure
from meal_scan.domain.nutrients import NutritionTier, fields_for_tier
from meal_scan.services.canonicalizer import Canonicalizer
from meal_scan.services.records import RecordBuilder

_logger = logging.getLogger(__name__)

AnalysisOutcome = AnalysisResult | Rejected | ExtractionFailure

ESSENTIAL_INSTRUCTIONS = """\
You analyze food images and identify ALL individual ingredients with their \
nutritional values.

1. Classify the input as food, nutritional_label_on_packed_product, \
packaged_product_only or no_food_no_label. Be critical: it must be real food \
or a food product.
2. Identify every ingredient and estimate its quantity in grams or ml.
3. Provide the essential values for EACH ingredient separately: calories \
(kcal), protein, carbs, sugar, fat, fiber, saturated fat and unsaturated fat \
(all in g).

When several images are given, treat each image as one ingredient of a single \
combined dish and name the dish after the combination. If an image shows a \
nutrition information panel, use it.
"""

COMPREHENSIVE_INSTRUCTIONS = """\
You analyze food images and identify ALL individual ingredients with COMPLETE \
nutritional profiles including vitamins and minerals.

1. Classify the input as food, nutritional_label_on_packed_product, \
packaged_product_only or no_food_no_label. Be critical: it must be real food \
or a food product.
2. Identify every ingredient and estimate its quantity in grams or ml.
3. For EACH ingredient provide the macros (calories, protein, carbs, sugar, \
fat, fiber, saturated and unsaturated fat), fatty acids (omega-3, omega-6, \
trans fat), minerals (sodium, potassium, calcium, magnesium, phosphorus, iron, \
zinc, selenium, iodine, copper, manganese, chromium), vitamins (A, D, E, K, C, \
thiamin, riboflavin, niacin, pantothenic acid, B6, biotin, folate, B12), \
choline and cholesterol. Leave a value null when it is unknown.

When several images are given, treat each image as one ingredient of a single \
combined dish. If an image shows a nutrition information panel, use it.
"""

SEARCH_INSTRUCTIONS = """\
You look up nutritional information for a single ingredient or food item.
Use web search to find accurate values from reliable nutrition databases and \
return the complete profile (macros, fatty acids, minerals, vitamins, choline \
and cholesterol) per 100 g unless a quantity is given. If the ingredient is \
ambiguous, use its most common form. Answer with one JSON object with a \
dish_name and an ingredients array holding exactly one ingredient with a name, \
a quantity such as "100g" and one numeric field per nutrient.
"""

EVALUATION_INSTRUCTIONS = """\
You are a nutrition coach reviewing twenty days of a user's food log.
Use web search for current dietary guidance where it helps. Judge progress \
towards the user's goal, meal timing and consistency. Answer with one JSON \
object with the string fields overallProgress, strengths, improvements and \
mealTimingFeedback, and an integer progressScore from 1 to 10.
"""

AUDIO_PROMPT = (
    "Listen to this recording where the user describes what they ate. "
    "Identify every food item mentioned, use the quantities the user states "
    "or estimate typical servings, and give the nutrition of each."
)


class ModelNotReadyError(RuntimeError):
    """Raised when analysis is requested before the models are initialized."""


class ProfileName(StrEnum):
    """Configured model profiles."""

    ESSENTIAL = "essential"
    COMPREHENSIVE = "comprehensive"
    SEARCH = "search"
    EVALUATION = "evaluation"


class PartKind(StrEnum):
    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"


@dataclass(frozen=True)
class ContentPart:
    """One part of a multimodal model request."""

    kind: PartKind
    text: str | None = None
    data: bytes | None = field(default=None, repr=False)
    mime_type: str | None = None

    @classmethod
    def from_text(cls, text: str) -> "ContentPart":
        return cls(kind=PartKind.TEXT, text=text)

    @classmethod
    def from_image(cls, data: bytes) -> "ContentPart":
        return cls(kind=PartKind.IMAGE, data=data, mime_type=_detect_mime_type(data))

    @classmethod
    def from_audio(cls, data: bytes, mime_type: str) -> "ContentPart":
        return cls(kind=PartKind.AUDIO, data=data, mime_type=mime_type)


@dataclass(frozen=True)
class ModelProfile:
    """Model, instructions and output contract for one kind of request."""

    name: ProfileName
    model: str
    instructions: str
    reasoning_effort: str | None
    store: bool
    output_schema: dict[str, object] | None = None
    web_search: bool = False


class InferenceClient(Protocol):
    """Interface for multimodal text generation."""

    async def generate(self, profile: ModelProfile, parts: list[ContentPart]) -> str:
        """Return the raw text reply for the request."""


@dataclass
class AnalysisService:
    """Send food inputs to the configured models and normalize the replies."""

    client: InferenceClient
    analysis_model: str
    search_model: str
    evaluation_model: str
    reasoning_effort: str | None = None
    store: bool = False
    record_builder: RecordBuilder = field(default_factory=RecordBuilder)
    _profiles: dict[ProfileName, ModelProfile] | None = field(
        default=None, init=False, repr=False
    )
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False
    )

    @property
    def canonicalizer(self) -> Canonicalizer:
        return self.record_builder.canonicalizer

    @property
    def is_ready(self) -> bool:
        return self._profiles is not None

    def initialize(self) -> None:
        """Build the model profiles once; later calls are no-ops."""
        if self._profiles is not None:
            return
        with self._lock:
            if self._profiles is not None:
                return
            self._profiles = self._build_profiles()
            _logger.info(
                "Analysis models initialized: analysis=%s search=%s evaluation=%s",
                self.analysis_model,
                self.search_model,
                self.evaluation_model,
            )

    def profile(self, name: ProfileName) -> ModelProfile:
        """Return an initialized profile."""
        if self._profiles is None:
            raise ModelNotReadyError("Analysis models are not initialized")
        return self._profiles[name]

    async def analyze_images(
        self,
        images: list[bytes],
        tier: NutritionTier = NutritionTier.ESSENTIAL,
        prompt: str | None = None,
    ) -> AnalysisOutcome:
        """Analyze one dish from one or more photos."""
        profile = self.profile(_tier_profile(tier))
        if not images:
            raise ValueError("No images provided")
        text = prompt or _image_prompt(len(images))
        parts = [ContentPart.from_text(text)]
        parts.extend(ContentPart.from_image(image) for image in images)
        raw = await self.client.generate(profile, parts)
        return self._normalize(raw, tier, original_input=images[0])

    async def analyze_audio(
        self, audio: bytes, mime_type: str = "audio/wav"
    ) -> AnalysisOutcome:
        """Analyze a spoken description of a meal."""
        profile = self.profile(ProfileName.ESSENTIAL)
        if not audio:
            raise ValueError("No audio provided")
        parts = [
            ContentPart.from_text(AUDIO_PROMPT),
            ContentPart.from_audio(audio, mime_type),
        ]
        raw = await self.client.generate(profile, parts)
        return self._normalize(raw, NutritionTier.ESSENTIAL, original_input=audio)

    async def search_ingredient(
        self, name: str, quantity: str | None = None
    ) -> AnalysisOutcome:
        """Look up a single ingredient using the web-search profile."""
        profile = self.profile(ProfileName.SEARCH)
        query = name.strip()
        if not query:
            raise ValueError("Ingredient name must not be empty")
        if quantity:
            prompt = (
                f"Look up the complete nutritional information for {quantity} of "
                f"{query}. Return it as a single ingredient in a dish."
            )
        else:
            prompt = (
                f"Look up the complete nutritional information for {query} "
                "(per 100g standard serving). Return it as a single ingredient "
                "in a dish."
            )
        raw = await self.client.generate(profile, [ContentPart.from_text(prompt)])
        return self._normalize(raw, NutritionTier.COMPREHENSIVE, fallback_query=query)

    async def evaluate_progress(self, request: dict[str, object]) -> str:
        """Return the raw evaluation text for a cycle summary."""
        profile = self.profile(ProfileName.EVALUATION)
        prompt = (
            "Evaluate this user's nutrition over their 20-day cycle.\n"
            + json.dumps(request, indent=2, default=str)
        )
        return await self.client.generate(profile, [ContentPart.from_text(prompt)])

    def _normalize(
        self,
        raw: str,
        tier: NutritionTier,
        fallback_query: str | None = None,
        original_input: bytes | None = None,
    ) -> AnalysisOutcome:
        parsed = self.canonicalizer.extract(raw)
        if isinstance(parsed, ExtractionFailure):
            return parsed
        return self.record_builder.build(
            parsed,
            tier,
            fallback_query=fallback_query,
            original_input=original_input,
        )

    def _build_profiles(self) -> dict[ProfileName, ModelProfile]:
        return {
            ProfileName.ESSENTIAL: ModelProfile(
                name=ProfileName.ESSENTIAL,
                model=self.analysis_model,
                instructions=ESSENTIAL_INSTRUCTIONS,
                reasoning_effort=self.reasoning_effort,
                store=self.store,
                output_schema=nutrition_schema(NutritionTier.ESSENTIAL),
            ),
            ProfileName.COMPREHENSIVE: ModelProfile(
                name=ProfileName.COMPREHENSIVE,
                model=self.analysis_model,
                instructions=COMPREHENSIVE_INSTRUCTIONS,
                reasoning_effort=self.reasoning_effort,
                store=self.store,
                output_schema=nutrition_schema(NutritionTier.COMPREHENSIVE),
            ),
            ProfileName.SEARCH: ModelProfile(
                name=ProfileName.SEARCH,
                model=self.search_model,
                instructions=SEARCH_INSTRUCTIONS,
                reasoning_effort=self.reasoning_effort,
                store=self.store,
                web_search=True,
            ),
            ProfileName.EVALUATION: ModelProfile(
                name=ProfileName.EVALUATION,
                model=self.evaluation_model,
                instructions=EVALUATION_INSTRUCTIONS,
                reasoning_effort=self.reasoning_effort,
                store=self.store,
                web_search=True,
            ),
        }


def nutrition_schema(tier: NutritionTier) -> dict[str, object]:
    """Return the JSON schema requested from the analysis model for a tier."""
    ingredient_properties: dict[str, object] = {
        "name": {"type": "string"},
        "quantity": {"type": "string", "description": 'e.g. "75g" or "30 ml"'},
    }
    for nutrient in fields_for_tier(tier):
        number_type = "number" if nutrient.required else ["number", "null"]
        ingredient_properties[nutrient.name] = {
            "type": number_type,
            "description": nutrient.unit,
        }

    return {
        "type": "object",
        "properties": {
            "image_classification": {
                "type": "string",
                "enum": [classification.value for classification in Classification],
            },
            "ingredients": {
                "type": "array",
                "items": {"type": "object", "properties": ingredient_properties},
            },
            "dish_name": {"type": "string"},
            "confidence": {"type": "number", "minimum": 0.0, "maximum": 1.0},
            "analysis_notes": {"type": "string"},
            "ai_evaluation": {
                "type": "string",
                "description": "One or two sentences on healthiness and suggestions",
            },
            "is_highly_processed": {"type": "boolean"},
        },
    }


def _tier_profile(tier: NutritionTier) -> ProfileName:
    if tier is NutritionTier.COMPREHENSIVE:
        return ProfileName.COMPREHENSIVE
    return ProfileName.ESSENTIAL


def _image_prompt(count: int) -> str:
    if count == 1:
        return (
            "Analyze this food image and identify all ingredients with their "
            "nutritional values."
        )
    return (
        f"Analyze these {count} food images. Each image represents ONE "
        "ingredient. Combine them into a single dish."
    )


def to_data_url(data: bytes, mime_type: str) -> str:
    """Convert bytes to a base64 data URL."""
    encoded = base64.b64encode(data).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def _detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
