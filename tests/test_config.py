"""
Tests for configuration defaults and loading.

Run with: pytest tests/test_config.py -v
"""
import json

from config import ExtractorConfig, VisionConfig, load_config


class TestDefaults:

    def test_tuned_constants(self):
        config = ExtractorConfig()
        assert config.reflow.vertical_tolerance == 6.0
        assert config.reflow.horizontal_gap == 2.0
        assert config.segmenter.max_cue_length == 35
        assert config.vision.batch_size == 10
        assert config.vision.batch_overlap == 1
        assert config.vision.max_pages == 100
        assert config.vision.context_size == 3

    def test_dict_round_trip(self):
        config = ExtractorConfig()
        config.vision.batch_size = 8
        assert ExtractorConfig.from_dict(config.to_dict()) == config

    def test_unknown_keys_are_ignored(self):
        config = ExtractorConfig.from_dict({"reflow": {"vertical_tolerance": 4.0, "bogus": 1}})
        assert config.reflow.vertical_tolerance == 4.0
        assert not hasattr(config.reflow, "bogus")


class TestApiKey:

    def test_explicit_key_wins(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        assert VisionConfig(api_key="sk-explicit").resolved_api_key() == "sk-explicit"

    def test_environment_key(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        assert VisionConfig().resolved_api_key() == "sk-env"


class TestLoadConfig:

    def test_no_path_gives_defaults(self, monkeypatch):
        monkeypatch.delenv("SCRIPT_VISION_MODEL", raising=False)
        assert load_config() == ExtractorConfig()

    def test_model_from_environment(self, monkeypatch):
        monkeypatch.setenv("SCRIPT_VISION_MODEL", "gpt-4o-mini")
        assert load_config().vision.model == "gpt-4o-mini"

    def test_file_overrides_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SCRIPT_VISION_MODEL", "gpt-4o-mini")
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "vision": {"model": "gpt-4.1", "batch_delay": 0},
            "segmenter": {"scene_keywords": ["AKT", "SZENE"]},
            "unknown": {"x": 1},
        }), encoding="utf-8")

        config = load_config(str(path))
        assert config.vision.model == "gpt-4.1"
        assert config.vision.batch_delay == 0
        assert config.vision.batch_size == 10
        assert config.segmenter.scene_keywords == ["AKT", "SZENE"]

    def test_missing_file_falls_back(self, monkeypatch, tmp_path):
        monkeypatch.delenv("SCRIPT_VISION_MODEL", raising=False)
        assert load_config(str(tmp_path / "nope.json")) == ExtractorConfig()
