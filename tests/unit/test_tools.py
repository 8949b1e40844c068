import os

from domains.conversion.tools import ToolLocator


def _make_tool(directory, name):
    directory.mkdir(parents=True, exist_ok=True)
    tool = directory / name
    tool.write_text("#!/bin/sh\nexit 0\n")
    tool.chmod(0o755)
    return tool


def test_search_paths_take_precedence(tmp_path, store):
    tool = _make_tool(tmp_path / "brew" / "bin", "ffmpeg")

    paths = ToolLocator([tmp_path / "brew" / "bin"], store).locate(["ffmpeg"])

    assert paths == {"ffmpeg": os.path.realpath(tool)}
    assert store.tool_exists("ffmpeg") is True


def test_symlinks_are_resolved(tmp_path):
    real = _make_tool(tmp_path / "cellar" / "7.0" / "bin", "cwebp")
    links = tmp_path / "bin"
    links.mkdir()
    (links / "cwebp").symlink_to(real)

    assert ToolLocator([links]).find("cwebp") == os.path.realpath(real)


def test_missing_tool_is_recorded(tmp_path, store):
    paths = ToolLocator([tmp_path], store).locate(["definitely-not-a-real-tool"])

    assert paths == {}
    assert store.tool_exists("definitely-not-a-real-tool") is False


def test_falls_back_to_path(tmp_path):
    assert ToolLocator([tmp_path]).find("sh") is not None
