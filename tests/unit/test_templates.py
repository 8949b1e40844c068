import json

from app.models.schemas import ConversionTemplate
from domains.conversion.templates import DEFAULT_TEMPLATES, TemplateRegistry


def test_load_defaults_without_override(tmp_path):
    registry = TemplateRegistry(tmp_path / "missing.json")

    templates = registry.load()

    assert templates == DEFAULT_TEMPLATES
    assert [(t.input_extension, t.output_extension) for t in templates] == [
        ("mp3", "mp3"),
        ("mp4", "mp4"),
        ("mov", "mp4"),
        ("mp4", "gif"),
        ("png", "webp"),
        ("jpg", "webp"),
    ]


def test_override_replaces_defaults(tmp_path):
    override = tmp_path / "templates.json"
    override.write_text(json.dumps([
        {
            "inputExtension": "wav",
            "outputExtension": "mp3",
            "command": "ffmpeg -i $input $output",
            "deleteOriginal": True,
        }
    ]))

    templates = TemplateRegistry(override).load()

    assert len(templates) == 1
    assert templates[0].input_extension == "wav"
    assert templates[0].delete_original is True


def test_malformed_override_falls_back_to_defaults(tmp_path):
    override = tmp_path / "templates.json"
    override.write_text("[{not json")

    assert TemplateRegistry(override).load() == DEFAULT_TEMPLATES


def test_partially_invalid_override_is_not_merged(tmp_path):
    override = tmp_path / "templates.json"
    override.write_text(json.dumps([
        {"inputExtension": "wav", "outputExtension": "mp3", "command": "x", "deleteOriginal": False},
        {"inputExtension": "aiff"},
    ]))

    assert TemplateRegistry(override).load() == DEFAULT_TEMPLATES


def test_find_is_case_insensitive():
    registry = TemplateRegistry()
    registry.load()

    assert registry.find("JPG") is registry.find("jpg")
    assert registry.find(".jpg").output_extension == "webp"
    assert registry.find("txt") is None


def test_first_registered_template_wins():
    registry = TemplateRegistry()
    registry.templates = [
        ConversionTemplate(input_extension="mp4", output_extension="mp4", command="first"),
        ConversionTemplate(input_extension="MP4", output_extension="gif", command="second"),
    ]

    assert registry.find("mp4").command == "first"
