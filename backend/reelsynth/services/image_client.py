"""
fal.ai image generation client.

Calls a synchronous text-to-image endpoint and downloads the first image.
"""

from typing import Optional, Dict

import httpx

from reelsynth.config import get_settings


class FalImageClient:
    """Still-image capability backed by fal.ai (FLUX schnell by default)."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = get_settings()
        self.api_key = self.settings.fal.api_key
        self.base_url = self.settings.fal.base_url.rstrip("/")
        self._transport = transport

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Key {self.api_key}",
            "Content-Type": "application/json",
        }

    async def synthesize(self, prompt: str) -> bytes:
        """
        Generate one image for `prompt`.

        Raises:
            ValueError: the response carried no image URL
            httpx.HTTPError: transport or non-2xx status
        """
        payload = {
            "prompt": prompt,
            "image_size": self.settings.fal.image_size,
            "num_images": 1,
            "output_format": "png",
            "enable_safety_checker": True,
        }

        async with httpx.AsyncClient(
            timeout=self.settings.fal.request_timeout_seconds,
            transport=self._transport,
        ) as client:
            response = await client.post(
                f"{self.base_url}/{self.settings.fal.image_model}",
                json=payload,
                headers=self._get_headers(),
            )
            response.raise_for_status()
            data = response.json()

            images = data.get("images") or []
            image_url = images[0].get("url") if images and isinstance(images[0], dict) else None
            if not image_url:
                raise ValueError("fal.ai response contained no image URL")

            download = await client.get(image_url)
            download.raise_for_status()
            return download.content
