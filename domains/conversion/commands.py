"""
Command line construction for conversion templates.

Computes non-colliding output paths and substitutes template placeholders
($input, $output, $quality, $preset) and bare tool names.
"""

import re
import shlex
from pathlib import Path
from typing import Callable, Mapping

from app.models.schemas import ConversionSettings, ConversionTemplate
from app.utils.errors import OutputExistsError


OPTIMIZED_SUFFIX = "_optimized"
FORCE_SUFFIX = "_optimized_force"

IMAGE_TOOLS = frozenset({"cwebp", "magick"})
IMAGE_EXTENSIONS = frozenset({"webp", "avif", "heic", "jpg", "jpeg", "png"})

_PLACEHOLDER = re.compile(r"\$(input|output|quality|preset)\b")


def is_already_optimized(path: Path) -> bool:
    """Check whether a file name carries a normalize suffix."""
    stem = path.stem
    return stem.endswith(OPTIMIZED_SUFFIX) or stem.endswith(FORCE_SUFFIX)


def plan_output_path(
    input_path: Path,
    template: ConversionTemplate,
    forced: bool,
    is_taken: Callable[[Path], bool],
) -> Path:
    """
    Compute the output path for one conversion.

    Args:
        input_path: File being converted
        template: Matched template
        forced: Whether this is an on-demand forced run
        is_taken: Predicate telling whether a candidate path is unavailable

    Returns:
        Output path that is free to write

    Raises:
        OutputExistsError: Output is taken and the run is not forced
    """
    stem = input_path.stem

    if template.is_normalize:
        if forced and is_already_optimized(input_path):
            stem = stem + FORCE_SUFFIX
        else:
            stem = stem + OPTIMIZED_SUFFIX

    extension = template.output_extension
    candidate = input_path.with_name(f"{stem}.{extension}")

    if not is_taken(candidate):
        return candidate

    if not forced:
        raise OutputExistsError(candidate)

    counter = 1
    while is_taken(candidate):
        candidate = input_path.with_name(f"{stem}_{counter}.{extension}")
        counter += 1
    return candidate


def is_image_template(template: ConversionTemplate) -> bool:
    """Image templates take the WebP quality instead of the video settings."""
    if template.output_extension.lower() in IMAGE_EXTENSIONS:
        return True
    return any(_tool_pattern(tool).search(template.command) for tool in IMAGE_TOOLS)


def _tool_pattern(name: str) -> re.Pattern:
    # Standalone token only: not part of a path, option or longer word
    return re.compile(rf"(?<![\w./$-]){re.escape(name)}(?![\w./-])")


def substitute_tools(command: str, tool_paths: Mapping[str, str]) -> str:
    """Replace bare tool names with their quoted absolute paths."""
    for name, path in tool_paths.items():
        quoted = shlex.quote(path)
        command = _tool_pattern(name).sub(lambda _m: quoted, command)
    return command


def build_command(
    template: ConversionTemplate,
    input_path: Path,
    output_path: Path,
    settings: ConversionSettings,
    tool_paths: Mapping[str, str],
) -> str:
    """
    Build the shell command for one conversion.

    Tool names are resolved on the raw template text, before any path is
    inserted, and placeholders are replaced in a single pass so substituted
    values are never rescanned.
    """
    if is_image_template(template):
        quality = str(settings.webp_quality)
    else:
        quality = str(settings.mp4_quality)

    values = {
        "input": shlex.quote(str(input_path)),
        "output": shlex.quote(str(output_path)),
        "quality": quality,
        "preset": settings.mp4_preset,
    }

    command = substitute_tools(template.command, tool_paths)
    return _PLACEHOLDER.sub(lambda match: values[match.group(1)], command)
