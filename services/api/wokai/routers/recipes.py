from fastapi import APIRouter, HTTPException

from ..schemas import RecipeStructure, StructureRecipeRequest
from ..services.recipe_structure import (
    InvalidRecipeStructure,
    StructuringUnavailable,
    structure_recipe_from_transcript,
)

router = APIRouter(prefix="/recipes", tags=["recipes"])


@router.post("/structure", response_model=RecipeStructure)
async def structure_recipe(body: StructureRecipeRequest):
    """Turn a narration transcript into a structured recipe."""
    try:
        return await structure_recipe_from_transcript(body.transcript)
    except StructuringUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    except InvalidRecipeStructure as e:
        raise HTTPException(status_code=502, detail=str(e))
