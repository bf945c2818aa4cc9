"""Image captioning via a LiteLLM vision model.

Images are never embedded as pixels, only as generated text. When every
attempt fails, a deterministic caption built from the file name is used so the
image stays findable.
"""

from __future__ import annotations

import base64
import logging
import mimetypes
import re
import time
from collections.abc import Callable
from pathlib import Path

import litellm

logger = logging.getLogger(__name__)

_CAPTION_PROMPT = (
    "Describe this image in one or two sentences for a search index. "
    "Mention the main subjects, any visible text, and the setting."
)
_DEFAULT_MODEL = "openai/gpt-4o-mini"


class Captioner:
    """Captioning capability: ``caption(path) -> text``.

    Args:
        model: LiteLLM model string with vision support.
        retries: Extra attempts after the first failure.
        retry_delay: Seconds between attempts.
        sleep: Injected for tests.
    """

    def __init__(
        self,
        model: str = _DEFAULT_MODEL,
        retries: int = 2,
        retry_delay: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if retries < 0:
            raise ValueError("retries must be >= 0")
        self.model = model
        self.retries = retries
        self.retry_delay = retry_delay
        self._sleep = sleep

    def caption(self, path: str) -> str:
        """Return the caption for the image at *path* (unprefixed)."""
        for attempt in range(self.retries + 1):
            try:
                text = self._describe(path).strip()
            except Exception as exc:
                logger.warning(
                    "Caption attempt %d/%d failed for %s: %s",
                    attempt + 1,
                    self.retries + 1,
                    path,
                    exc,
                )
            else:
                if text:
                    return text
                logger.warning("Empty caption for %s", path)
            if attempt < self.retries:
                self._sleep(self.retry_delay)

        logger.warning("Using filename caption for %s", path)
        return fallback_caption(path)

    def _describe(self, path: str) -> str:
        mime = mimetypes.guess_type(path)[0] or "image/png"
        data = base64.b64encode(Path(path).read_bytes()).decode("ascii")
        response = litellm.completion(
            model=self.model,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": _CAPTION_PROMPT},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{mime};base64,{data}"},
                        },
                    ],
                }
            ],
            max_tokens=200,
            temperature=0.0,
        )
        return response.choices[0].message.content or ""


def search_terms(file_name: str) -> list[str]:
    """Words of the file stem longer than 2 chars, non-numeric, lowercased, unique."""
    stem = Path(file_name).stem
    terms: list[str] = []
    for word in re.split(r"[-_\s.]+", stem):
        word = word.lower()
        if len(word) > 2 and not word.isdigit() and word not in terms:
            terms.append(word)
    return terms


def fallback_caption(path: str) -> str:
    name = Path(path).name
    caption = f"Image file: {name}."
    if terms := search_terms(name):
        caption += f" Search terms: {', '.join(terms)}."
    return caption
