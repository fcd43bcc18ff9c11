"""Initiation context handed to the conversational agent when it connects."""

from ..schemas import RecipeStructure


def build_agent_prompt(recipe: RecipeStructure, current_step_index: int) -> str:
    ingredients = "\n".join(f"{i + 1}. {ing}" for i, ing in enumerate(recipe.ingredients))
    steps = "\n".join(f"Step {i + 1}: {step}" for i, step in enumerate(recipe.steps))

    extras = []
    if recipe.timing:
        t = recipe.timing
        extras.append(f"Timing: Prep {t.prep or 0:g} min, Cook {t.cook or 0:g} min, Total {t.total or 0:g} min")
    if recipe.techniques:
        extras.append(f"Techniques used: {', '.join(recipe.techniques)}")

    total = len(recipe.steps)
    return f"""You are helping the user cook "{recipe.title}". They are currently on step {current_step_index + 1} of {total}.

**Current Step:** {recipe.steps[current_step_index]}

**All Ingredients:**
{ingredients}

**All Steps:**
{steps}

{chr(10).join(extras)}

## Your Role:
- Answer questions about ingredients, techniques, and steps
- Use the client tools (advance, retreat, repeat, jump, startTimer) when the user asks for navigation or timers
- Be encouraging and helpful
- Keep responses concise since the user is actively cooking

When the user says:
- "next step" or "next" -> call advance
- "previous step" or "back" -> call retreat
- "repeat" or "say that again" -> call repeat
- "go to step N" -> call jump with {{"step": N}}
- "set a timer for X minutes" -> call startTimer with {{"minutes": X}}

You may also receive messages saying the user moved to a step on screen. The step has already changed:
read it aloud and do not call any navigation tool in response.

For other questions, give helpful cooking advice based on the recipe above."""


def build_first_message(recipe: RecipeStructure, current_step_index: int) -> str:
    return (
        f"Hi! I'm your cooking assistant for {recipe.title}. "
        f"You're currently on step {current_step_index + 1}. How can I help you?"
    )
