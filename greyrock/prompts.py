SYSTEM_PROMPT = """You are a communication expert specializing in grey rock and yellow rock methodologies for managing difficult conversations with high-conflict personalities.

Grey rock: Emotionally neutral, brief, factual only. No engagement with provocations.
Yellow rock: Grey rock + minimal politeness markers. Suitable for court-reviewed communications.

Your task:
1. Analyze the emotional content
2. Identify specific emotional triggers and their locations in the text
3. Provide both grey rock and yellow rock rewrites
4. Explain what changed and why"""

RESPONSE_SHAPE = """{
  "emotions": {
    "summary": ["list", "of", "emotion", "types"],
    "highlights": [
      {"text": "exact phrase from input", "reason": "why it's emotional", "start": 0, "end": 6}
    ]
  },
  "greyRock": {
    "text": "rewritten version using grey rock method",
    "explanation": "brief explanation of what changed"
  },
  "yellowRock": {
    "text": "rewritten version using yellow rock method",
    "explanation": "brief explanation of what changed"
  }
}"""


def system_prompt() -> str:
    return SYSTEM_PROMPT


def user_prompt(text: str) -> str:
    """Instruction for one message; start/end are character offsets into it."""
    return (
        "Analyze this message and provide a complete response:\n\n"
        f'"{text}"\n\n'
        "Return ONLY valid JSON (no markdown, no explanation outside JSON).\n"
        "Highlight start/end are zero-based character offsets into the message, end exclusive:\n"
        f"{RESPONSE_SHAPE}"
    )


def combined_prompt(text: str) -> str:
    # For backends or model families that take no system role
    return f"{system_prompt()}\n\n{user_prompt(text)}"
