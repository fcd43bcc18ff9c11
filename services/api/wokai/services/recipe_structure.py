"""Recipe structuring: narration transcript -> ``RecipeStructure``.

The model does the language work; this module owns the prompt and enforces
the contract the cook session relies on (non-empty title, ingredients and
steps).
"""

import json
import logging
import re

from pydantic import ValidationError

from ..core.ai_client import ai_client
from ..schemas import RecipeStructure

logger = logging.getLogger("wokai.recipe_structure")

FENCE_RE = re.compile(r"^```(?:json)?\s*\n?(.*?)\n?```$", re.DOTALL)

PROMPT_TEMPLATE = """You are a recipe structuring assistant. Analyze the following recipe narration and extract structured information.

Recipe narration:
{transcript}

Extract and return ONLY a valid JSON object with this exact structure (no markdown, no code blocks, just the JSON):
{{
  "title": "Recipe name",
  "ingredients": ["ingredient 1", "ingredient 2", ...],
  "steps": ["step 1", "step 2", ...],
  "timing": {{
    "prep": minutes as number,
    "cook": minutes as number,
    "total": minutes as number
  }},
  "techniques": ["technique 1", "technique 2", ...]
}}

Rules:
- Extract a clear, concise title
- List all ingredients with quantities
- Break down into clear, numbered steps
- Extract timing information (prep, cook, total in minutes)
- Identify cooking techniques mentioned (e.g., "saute", "boil", "dice")
- Return ONLY the JSON object, no other text"""


class StructuringUnavailable(RuntimeError):
    pass


class InvalidRecipeStructure(ValueError):
    pass


def strip_code_fences(text: str) -> str:
    text = text.strip()
    match = FENCE_RE.match(text)
    return match.group(1).strip() if match else text


def parse_recipe_json(text: str) -> RecipeStructure:
    """Parse model output into a validated recipe.

    Raises:
        InvalidRecipeStructure: not JSON, or missing/empty title, ingredients
            or steps.
    """
    try:
        data = json.loads(strip_code_fences(text))
    except json.JSONDecodeError as e:
        raise InvalidRecipeStructure(f"Recipe is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise InvalidRecipeStructure("Recipe must be a JSON object")
    try:
        return RecipeStructure.model_validate(data)
    except ValidationError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
        raise InvalidRecipeStructure(f"Invalid recipe structure: problems with {', '.join(fields) or 'the recipe'}") from e


async def structure_recipe_from_transcript(transcript: str) -> RecipeStructure:
    if not ai_client.is_available():
        raise StructuringUnavailable("Recipe structuring requires AI_MODE=gemini and a Gemini API key")

    text = await ai_client.generate_json_text(PROMPT_TEMPLATE.format(transcript=transcript))
    if text is None:
        raise StructuringUnavailable(ai_client.last_error or "Recipe structuring failed")

    recipe = parse_recipe_json(text)
    logger.info(f"Structured recipe '{recipe.title}' with {len(recipe.steps)} steps")
    return recipe
