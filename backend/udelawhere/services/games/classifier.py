"""Gemini-backed enrichment: image recognizability and campus fun facts.

Nothing here is allowed to break a game. Every failure path logs and falls
back to the mid-scale factor or a canned fact.
"""

import logging
import mimetypes
import os
import random
import re
from typing import Optional

import google.generativeai as genai

from udelawhere import socketio
from .scoring import DEFAULT_RECOGNIZABILITY, normalize_recognizability

logger = logging.getLogger(__name__)

DEFAULT_MODEL = 'gemini-1.5-flash'

RECOGNIZABILITY_PROMPT = """
Analyze this image of a location at the University of Delaware.
Rate it on a scale of 1 to 10 for how recognizable the location is.
A score of 1 means it's very difficult to recognize where this is on campus.
A score of 10 means it's extremely easy to identify the exact location.
Consider factors like:
- Presence of distinctive landmarks or buildings
- Visibility of signage or campus markers
- Unique architectural features
- Clear sight lines to known campus areas
Respond ONLY with a single number between 1 and 10, nothing else.
"""

FUN_FACT_PROMPT = (
    "Give me a short, interesting fun fact about the University of Delaware related to {name} "
    "or that area of campus. The fact should be about the university's history, famous alumni, "
    "traditions, or unique features. Keep it to 1-2 sentences maximum. Make it casual and "
    "interesting for college students. Start with \"Did you know?\" and don't use markdown formatting."
)

FALLBACK_FACTS = [
    "Did you know? The University of Delaware traces its roots to 1743, making it one of the oldest universities in the country.",
    "Did you know? UD sent the first American study abroad group overseas in 1923.",
    "Did you know? Before it was a university, UD was known as the Academy of Newark.",
    "Did you know? UD's blue and gold colors date back to 1889.",
    "Did you know? UDairy Creamery ice cream is made with milk from the cows on UD's own farm.",
    "Did you know? The Green was laid out in the spirit of Jefferson's lawn at the University of Virginia.",
    "Did you know? The Blue Hen became Delaware's state bird thanks to its link with UD.",
    "Did you know? YoUDee, UD's mascot, is in the Mascot Hall of Fame.",
]


def fallback_fact() -> str:
    return random.choice(FALLBACK_FACTS)


def extract_rating(text: Optional[str]) -> Optional[int]:
    """First integer in a model reply, clamped to [1, 10]; None when absent."""
    match = re.search(r'\d+', (text or '').strip())
    if not match:
        return None
    return normalize_recognizability(int(match.group(0)))


class RecognizabilityClassifier:
    def __init__(self):
        self.api_key: Optional[str] = None
        self.model_name = DEFAULT_MODEL
        self.locations_root: Optional[str] = None
        self.image_face = 'px.jpg'
        self._model = None

    def init_app(self, app) -> None:
        self.api_key = app.config.get('GEMINI_API_KEY') or None
        self.model_name = app.config.get('GEMINI_MODEL') or DEFAULT_MODEL
        self.locations_root = app.config.get('LOCATIONS_ROOT')
        self.image_face = app.config.get('CLASSIFIER_IMAGE_FACE', 'px.jpg')
        self._model = None
        if self.api_key:
            genai.configure(api_key=self.api_key)
        else:
            app.logger.warning("[classifier] GEMINI_API_KEY is not set; recognizability defaults to mid-scale")

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _get_model(self):
        if self._model is None:
            self._model = genai.GenerativeModel(self.model_name)
        return self._model

    def image_path(self, location) -> Optional[str]:
        if not self.locations_root or '/' not in location.image:
            return None
        return os.path.join(self.locations_root, location.image.strip('/'), self.image_face)

    def classify_image(self, path: Optional[str]) -> Optional[int]:
        """Ask the model for a rating; None when no real rating was obtained."""
        if not self.enabled:
            return None
        if not path or not os.path.isfile(path):
            logger.error(f"[classifier] image not found: {path}")
            return None
        try:
            with open(path, 'rb') as img:
                image_bytes = img.read()
            if not image_bytes:
                logger.error(f"[classifier] image is empty: {path}")
                return None
            mime_type = mimetypes.guess_type(path)[0] or 'image/jpeg'
            response = self._get_model().generate_content([
                RECOGNIZABILITY_PROMPT,
                {'mime_type': mime_type, 'data': image_bytes},
            ])
            rating = extract_rating(response.text)
        except Exception as exc:
            logger.error(f"[classifier] rating failed for {path}: {exc}")
            return None
        if rating is None:
            logger.error(f"[classifier] no number in reply for {path}")
            return None
        logger.info(f"[classifier] {path} rated {rating}")
        return rating

    def rate_image(self, path: Optional[str]) -> int:
        rating = self.classify_image(path)
        return DEFAULT_RECOGNIZABILITY if rating is None else rating

    def classify_location(self, location) -> Optional[int]:
        return self.classify_image(self.image_path(location))

    def rate_location(self, location) -> int:
        return self.rate_image(self.image_path(location))

    def rate_location_async(self, location) -> None:
        """Resolve the location's factor in the background; gameplay never waits on it."""
        if location.is_rated() or not self.enabled:
            return

        def _worker():
            try:
                factor = self.classify_location(location)
            except Exception as exc:
                logger.error(f"[classifier] background rating failed for {location.id}: {exc}")
                return
            # unresolved locations already score as mid-scale
            if factor is not None:
                location.resolve_recognizability(factor)

        socketio.start_background_task(_worker)

    def fun_fact(self, location_name: Optional[str] = None) -> str:
        if not self.enabled or not location_name:
            return fallback_fact()
        try:
            response = self._get_model().generate_content(FUN_FACT_PROMPT.format(name=location_name))
            text = (response.text or '').strip()
        except Exception as exc:
            logger.error(f"[classifier] fun fact failed for {location_name}: {exc}")
            return fallback_fact()
        return text or fallback_fact()
