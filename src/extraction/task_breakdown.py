import logging
from typing import List, Optional

from pydantic import ValidationError

from llm.llm_client import LLMClient
from llm.schemas import BreakdownResult
from task_planner.errors import BreakdownError
from task_planner.models import Subtask

logger = logging.getLogger(__name__)

MIN_DURATION_MIN = 25
MAX_DURATION_MIN = 60

SYSTEM_PROMPT = "You are a productivity expert. Reply with JSON only."

PROMPT_TEMPLATE = """Break down the following task into actionable subtasks that can each be completed in {lo}-{hi} minutes.

Task Title: {title}
Task Description: {description}

Respond with a JSON object holding an array of subtasks. Each subtask has:
- title: a clear, actionable title
- description: a brief description of what needs to be done (optional)
- duration: estimated duration in minutes (between {lo}-{hi})

{{
  "subtasks": [
    {{"title": "Subtask title", "description": "Brief description", "duration": 45}}
  ]
}}

Order the subtasks logically and keep each one focused and achievable."""


def clamp_duration(minutes: int) -> int:
    return min(max(minutes, MIN_DURATION_MIN), MAX_DURATION_MIN)


def build_prompt(title: str, description: Optional[str]) -> str:
    return PROMPT_TEMPLATE.format(
        title=title,
        description=description or "No additional description provided",
        lo=MIN_DURATION_MIN,
        hi=MAX_DURATION_MIN,
    )


class TaskBreakdown:

    def __init__(self, llm_client: Optional[LLMClient] = None):
        self.llm = llm_client or LLMClient(system=SYSTEM_PROMPT)

    def generate(self, title: str, description: Optional[str] = None) -> List[Subtask]:
        """Ask the model for subtasks; durations are clamped to [25, 60] minutes.

        Raises BreakdownError on any provider or parsing failure. There is no
        fallback plan.
        """
        prompt = build_prompt(title, description)
        try:
            data = self.llm.complete_json(prompt)
            parsed = BreakdownResult.model_validate(data)
        except (ValueError, ValidationError) as e:
            logger.error(f"Failed to parse AI response: {e}")
            raise BreakdownError("Failed to parse AI response") from e
        except Exception as e:
            logger.error(f"AI breakdown call failed: {e}")
            raise BreakdownError(str(e)) from e

        if not parsed.subtasks:
            raise BreakdownError("AI response contained no subtasks")

        return [
            Subtask(
                title=item.title,
                description=item.description,
                duration=clamp_duration(item.duration),
                order=index,
            )
            for index, item in enumerate(parsed.subtasks)
        ]
