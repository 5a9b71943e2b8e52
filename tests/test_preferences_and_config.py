from __future__ import annotations

import json
import logging

import pytest

from tileview.config import ViewerConfig
from tileview.preferences import DEFAULT_RENDERER, RendererPreference, is_renderer
from tileview.remote import RemoteOverridePolicy


def test_missing_file_yields_default(tmp_path) -> None:
    pref = RendererPreference(tmp_path / "missing.json")

    assert pref.load() == DEFAULT_RENDERER == "webgl"


def test_saved_renderer_survives_reload(tmp_path) -> None:
    path = tmp_path / "nested" / "prefs.json"

    RendererPreference(path).save("svg")

    assert RendererPreference(path).load() == "svg"
    assert json.loads(path.read_text(encoding="utf-8")) == {"renderer": "svg"}


def test_save_keeps_unrelated_keys(tmp_path) -> None:
    path = tmp_path / "prefs.json"
    path.write_text(json.dumps({"theme": "dark"}), encoding="utf-8")

    RendererPreference(path).save("svg")

    assert json.loads(path.read_text(encoding="utf-8")) == {"theme": "dark", "renderer": "svg"}


def test_save_rejects_unknown_renderer(tmp_path) -> None:
    pref = RendererPreference(tmp_path / "prefs.json")

    with pytest.raises(ValueError):
        pref.save("canvas")
    assert not pref.path.exists()


@pytest.mark.parametrize("content", ['{"renderer": "canvas"}', "not json", "[1, 2]"])
def test_invalid_stored_value_falls_back_to_default(tmp_path, caplog, content: str) -> None:
    path = tmp_path / "prefs.json"
    path.write_text(content, encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="tileview.preferences"):
        assert RendererPreference(path).load() == "webgl"


def test_is_renderer() -> None:
    assert is_renderer("webgl")
    assert is_renderer("svg")
    assert not is_renderer("WEBGL")
    assert not is_renderer(None)


def test_config_defaults() -> None:
    config = ViewerConfig()

    assert config.url_write_delay_ms == 100
    assert config.feed_url == "ws://localhost:25568"
    assert config.remote_allow_zero is False
    assert config.remote_policy is RemoteOverridePolicy.ALWAYS


def test_config_coerces_policy_and_path(tmp_path) -> None:
    config = ViewerConfig(remote_policy="defer-to-interaction", preferences_path=str(tmp_path / "p.json"))

    assert config.remote_policy is RemoteOverridePolicy.DEFER_TO_INTERACTION
    assert config.preferences_path == tmp_path / "p.json"


@pytest.mark.parametrize("field", ["url_write_delay_ms", "relayout_throttle_ms"])
def test_config_rejects_non_positive_delays(field: str) -> None:
    with pytest.raises(ValueError):
        ViewerConfig(**{field: 0})
