"""
Google Gemini client used as the script-writing capability.
"""

from typing import Optional

import google.generativeai as genai
from google.generativeai.types import HarmCategory, HarmBlockThreshold

from reelsynth.config import get_settings


class GeminiClient:
    """
    Thin async wrapper around a Gemini text model.

    Returns the raw reply text; shaping and validating it is the caller's job.
    """

    def __init__(self, model_name: Optional[str] = None):
        self.settings = get_settings()

        genai.configure(api_key=self.settings.gemini.api_key)

        self.model = genai.GenerativeModel(
            model_name or self.settings.gemini.model,
            safety_settings={
                HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_ONLY_HIGH,
                HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_ONLY_HIGH,
                HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_ONLY_HIGH,
                HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_ONLY_HIGH,
            },
            generation_config={
                "temperature": self.settings.gemini.temperature,
                "response_mime_type": "application/json",
            },
        )

    async def generate(self, prompt: str) -> str:
        """
        Send one prompt and return the reply text ("" when the model returned nothing).
        """
        response = await self.model.generate_content_async(
            prompt,
            request_options={"timeout": self.settings.gemini.request_timeout_seconds},
        )
        try:
            return (response.text or "").strip()
        except ValueError:
            # .text raises when the candidate was blocked or has no parts
            return ""
