"""
Prompt assembly layer.
"""

from __future__ import annotations

from backend.app.orchestrator.types import ContextBundle


class PromptAssembler:
    def __init__(self, dialogue_window: int = 5):
        self.dialogue_window = dialogue_window

    def recent_dialogue(self, dialogue: str) -> list[str]:
        lines = [line for line in (dialogue or "").split("\n") if line.strip()]
        if self.dialogue_window <= 0:
            return []
        return lines[-self.dialogue_window:]

    def build(self, name: str, instructions: str, prompt: str, context: ContextBundle) -> str:
        recent = "\n".join(self.recent_dialogue(context.dialogue))

        rules = (
            f"1. STAY ON TOPIC: The user is asking about {prompt}. "
            "Do NOT talk about yourself unless specifically asked\n"
            "2. NO REPETITION: Don't repeat phrases from your recent messages shown above\n"
            "3. MEMORY ACTIVE: Reference the conversation history to maintain context\n"
            "4. FOCUSED RESPONSE: Address the current question directly\n"
            f"5. STAY IN CHARACTER: Always answer as {name}, never as an AI assistant\n"
        )
        if context.repetition.is_repetitive and context.repetition.last_response:
            rules += (
                "6. The user is repeating an earlier message. Give a fresh answer and do not reuse "
                f'this previous response: "{context.repetition.last_response}"\n'
            )

        semantic = ""
        if context.semantic_context.strip():
            semantic = f"\nRELEVANT MEMORIES:\n{context.semantic_context.strip()}\n"

        return f"""<|system|>
You are {name}. Stay focused on the current topic of discussion.

Core Identity:
{instructions}

CONVERSATION HISTORY (Last {self.dialogue_window} exchanges):
{recent}
{semantic}
CURRENT TOPIC: {prompt}

RULES:
{rules}
Current question: {prompt}
Response as {name}, focusing ONLY on the asked topic:
<|assistant|>"""
