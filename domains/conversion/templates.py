"""
Conversion template registry.

Loads conversion rules from an override JSON document, falling back to the
built-in defaults when the document is missing or malformed.
"""

import json
from pathlib import Path
from typing import List, Optional

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from app.models.schemas import ConversionTemplate


_VIDEO_COMMAND = (
    "ffmpeg -i $input -vcodec libx264 -crf $quality -preset $preset "
    "-movflags +faststart $output"
)

DEFAULT_TEMPLATES: List[ConversionTemplate] = [
    ConversionTemplate(
        input_extension="mp3",
        output_extension="mp3",
        command="ffmpeg -i $input -ac 1 -ar 22050 -b:a 64k $output",
        delete_original=True,
    ),
    ConversionTemplate(
        input_extension="mp4",
        output_extension="mp4",
        command=_VIDEO_COMMAND,
        delete_original=False,
    ),
    ConversionTemplate(
        input_extension="mov",
        output_extension="mp4",
        command=_VIDEO_COMMAND,
        delete_original=True,
    ),
    ConversionTemplate(
        input_extension="mp4",
        output_extension="gif",
        command=(
            'ffmpeg -i $input -vf "fps=10,scale=320:-1:flags=lanczos,'
            'split[s0][s1];[s0]palettegen[p];[s1][p]paletteuse" -loop 0 $output'
        ),
        delete_original=False,
    ),
    ConversionTemplate(
        input_extension="png",
        output_extension="webp",
        command="cwebp -q $quality $input -o $output",
        delete_original=False,
    ),
    ConversionTemplate(
        input_extension="jpg",
        output_extension="webp",
        command="magick $input -colorspace sRGB -quality $quality webp:$output",
        delete_original=False,
    ),
]

_TEMPLATE_LIST = TypeAdapter(List[ConversionTemplate])


class TemplateRegistry:
    """Ordered list of conversion templates; first match wins."""

    def __init__(self, override_file: Optional[Path] = None):
        """
        Initialize registry.

        Args:
            override_file: Optional JSON document replacing the defaults
        """
        self.override_file = Path(override_file) if override_file else None
        self.templates: List[ConversionTemplate] = []

    def load(self) -> List[ConversionTemplate]:
        """
        Load templates from the override document or the defaults.

        Returns:
            The active template list
        """
        self.templates = self._load_override() or list(DEFAULT_TEMPLATES)
        logger.info(f"Loaded {len(self.templates)} conversion templates")
        return self.templates

    def _load_override(self) -> Optional[List[ConversionTemplate]]:
        if self.override_file is None:
            return None

        if not self.override_file.exists():
            logger.debug(f"No template override at {self.override_file}, using defaults")
            return None

        try:
            raw = json.loads(self.override_file.read_text(encoding="utf-8"))
            templates = _TEMPLATE_LIST.validate_python(raw)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Invalid template override {self.override_file}, using defaults: {e}")
            return None

        if not templates:
            logger.warning(f"Template override {self.override_file} is empty, using defaults")
            return None

        logger.info(f"Using template override: {self.override_file}")
        return templates

    def find(self, extension: str) -> Optional[ConversionTemplate]:
        """
        Find the first template for an extension.

        Args:
            extension: File extension, with or without leading dot, any case

        Returns:
            Matching template or None
        """
        if not self.templates:
            self.load()

        wanted = extension.lstrip(".").lower()
        for template in self.templates:
            if template.input_extension.lower() == wanted:
                return template
        return None
