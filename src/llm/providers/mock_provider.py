from __future__ import annotations
import json
from llm.providers.base import LLMProvider

class MockProvider(LLMProvider):
    def generate(self, *, system: str, user: str, model: str | None = None) -> str:
        """
        Returns a canned breakdown so the app can run without an API key.
        """
        if "Break down the following task" in user:
            return json.dumps({
                "subtasks": [
                    {
                        "title": "Clarify the goal",
                        "description": "Write down what done looks like",
                        "duration": 25
                    },
                    {
                        "title": "Do the core work",
                        "description": "Focus block on the main deliverable",
                        "duration": 60
                    },
                    {
                        "title": "Review and wrap up",
                        "description": "Check the result and note follow-ups",
                        "duration": 30
                    }
                ]
            })

        # Default fallback
        return "{}"
