"""
Scene script generation.

Asks the script model for a fixed number of scenes (image prompt + narration)
about a subject within a domain, and validates the reply's shape.
"""

import json
import re
from typing import List, Optional

from reelsynth.config import get_settings
from reelsynth.errors import GenerationError, ParseError, ValidationError
from reelsynth.models import Scene
from reelsynth.services.capabilities import ScriptModel


SCRIPT_PROMPT = (
    "You write scripts for short vertical videos.\n\n"
    "SUBJECT: {subject}\n"
    "DOMAIN: {domain}\n\n"
    "Write exactly {count} scenes that tell a compelling story about the subject's "
    "career and achievements in this domain, in chronological order.\n"
    "For each scene give:\n"
    "- imagePrompt: a vivid, photorealistic description of a single still image "
    "(no text, no logos, no captions in the image)\n"
    "- narration: one or two spoken sentences, at most 35 words\n\n"
    "Respond with JSON only, in this exact shape:\n"
    '{{"scenes": [{{"imagePrompt": "...", "narration": "..."}}]}}'
)


def _strip_code_fences(text: str) -> str:
    return re.sub(r"```(?:json)?\s*|```", "", text).strip()


class SceneScriptGenerator:
    """Generates and validates the scene list for one job."""

    def __init__(self, model: ScriptModel, scene_count: Optional[int] = None):
        self.model = model
        self.scene_count = scene_count or get_settings().pipeline.scene_count

    def build_prompt(self, subject: str, domain: str) -> str:
        return SCRIPT_PROMPT.format(subject=subject, domain=domain, count=self.scene_count)

    async def generate(self, subject: str, domain: str) -> List[Scene]:
        subject = (subject or "").strip()
        domain = (domain or "").strip()
        if not subject or not domain:
            raise ValidationError("Both a subject and a domain are required")

        try:
            raw = await self.model.generate(self.build_prompt(subject, domain))
        except Exception as e:
            raise GenerationError("Script generation failed", diagnostic=str(e)) from e

        if not raw or not raw.strip():
            raise GenerationError("Script generation returned no text")

        return self.parse(raw)

    def parse(self, raw: str) -> List[Scene]:
        """
        Parse the model's reply into scenes.

        Raises:
            ParseError: not JSON, or missing/invalid `scenes` entries
            ValidationError: wrong number of scenes
        """
        text = _strip_code_fences(raw)
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ParseError("Script was not valid JSON", diagnostic=f"{e}: {text[:500]}") from e

        items = data.get("scenes") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise ParseError("Script is missing the 'scenes' list", diagnostic=text[:500])

        scenes: List[Scene] = []
        for i, item in enumerate(items):
            if not isinstance(item, dict):
                raise ParseError("Script scene is not an object", scene_index=i)
            image_prompt = item.get("imagePrompt")
            narration = item.get("narration")
            if not isinstance(image_prompt, str) or not image_prompt.strip():
                raise ParseError("Script scene is missing 'imagePrompt'", scene_index=i)
            if not isinstance(narration, str) or not narration.strip():
                raise ParseError("Script scene is missing 'narration'", scene_index=i)
            scenes.append(
                Scene(index=i, image_prompt=image_prompt.strip(), narration_text=narration.strip())
            )

        if len(scenes) != self.scene_count:
            raise ValidationError(
                f"Script has {len(scenes)} scenes, expected {self.scene_count}"
            )

        return scenes
