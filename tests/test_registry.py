"""Tests for the provider registry, route classification and settings validation."""

import dataclasses

import pytest

from app.core.config import Settings, settings, validate_settings_for_production
from app.core.exceptions import ConfigurationError
from app.gateway.registry import ProviderRegistry
from app.gateway.routing import classify_route, is_current_topic_query, is_platform_query
from app.gateway.types import ProviderName, RouteProfile
from stubs import make_candidate


def _settings(**overrides) -> Settings:
    values = {
        "openrouter_api_key": "or-key",
        "together_api_key": "tg-key",
        "openrouter_premium_model": "anthropic/claude-3.5-sonnet",
        "openrouter_free_models": ["free/a", "free/b", "free/c"],
        "openrouter_current_topic_models": ["free/c", "recent/x"],
        "openrouter_vision_models": ["vision/a", "vision/b"],
        "together_model": "together/llama",
        "llm_timeout_seconds": 12.0,
        "llm_max_tokens": 321,
        "llm_temperature": 0.3,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestProviderRegistry:
    def test_default_route_order(self):
        registry = ProviderRegistry.from_settings(_settings())
        models = [c.model for c in registry.candidates(RouteProfile.DEFAULT)]
        assert models == ["anthropic/claude-3.5-sonnet", "free/a", "free/b", "free/c", "together/llama"]

    def test_alternate_provider_is_last(self):
        registry = ProviderRegistry.from_settings(_settings())
        for profile in (RouteProfile.DEFAULT, RouteProfile.CURRENT_TOPIC, RouteProfile.PLATFORM):
            cands = registry.candidates(profile)
            assert cands[-1].provider == ProviderName.TOGETHER

    def test_vision_route_has_only_vision_models(self):
        registry = ProviderRegistry.from_settings(_settings())
        models = [c.model for c in registry.candidates(RouteProfile.VISION)]
        assert models == ["vision/a", "vision/b"]

    def test_vision_route_without_openrouter_falls_back_to_default(self):
        registry = ProviderRegistry.from_settings(_settings(openrouter_api_key=""))
        assert registry.candidates(RouteProfile.VISION) == registry.candidates(RouteProfile.DEFAULT)

    def test_current_topic_route_dedupes_preserving_first_position(self):
        registry = ProviderRegistry.from_settings(_settings())
        models = [c.model for c in registry.candidates(RouteProfile.CURRENT_TOPIC)]
        assert models == ["free/c", "recent/x", "free/a", "free/b", "together/llama"]

    def test_platform_route_skips_premium(self):
        registry = ProviderRegistry.from_settings(_settings())
        models = [c.model for c in registry.candidates(RouteProfile.PLATFORM)]
        assert "anthropic/claude-3.5-sonnet" not in models
        assert models[0] == "free/a"

    def test_candidates_carry_configuration(self):
        registry = ProviderRegistry.from_settings(_settings())
        first = registry.candidates()[0]
        assert first.provider == ProviderName.OPENROUTER
        assert first.endpoint == "https://openrouter.ai/api/v1/chat/completions"
        assert first.api_key == "or-key"
        assert first.timeout_seconds == 12.0
        assert first.max_tokens == 321
        assert first.temperature == 0.3

    def test_only_together_configured(self):
        registry = ProviderRegistry.from_settings(_settings(openrouter_api_key=""))
        for profile in RouteProfile:
            assert [c.model for c in registry.candidates(profile)] == ["together/llama"]

    def test_only_openrouter_configured(self):
        registry = ProviderRegistry.from_settings(_settings(together_api_key=""))
        assert registry.providers == {ProviderName.OPENROUTER}

    def test_no_credentials_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            ProviderRegistry.from_settings(_settings(openrouter_api_key="", together_api_key=""))

    def test_empty_candidate_list_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            ProviderRegistry.from_candidates([])

    def test_candidates_are_immutable(self):
        registry = ProviderRegistry.from_candidates([make_candidate("m1")])
        cands = registry.candidates()
        assert isinstance(cands, tuple)
        with pytest.raises(dataclasses.FrozenInstanceError):
            cands[0].model = "other"  # type: ignore[misc]

    def test_api_key_not_in_repr(self):
        assert "key-openrouter" not in repr(make_candidate("m1"))


class TestRouting:
    def test_platform_question(self):
        assert is_platform_query("Como usar o ranking da plataforma?")
        assert classify_route("Como usar o ranking da plataforma?") == RouteProfile.PLATFORM

    def test_current_topic_question(self):
        assert is_current_topic_query("O que o Copom decidiu sobre a Selic?")
        assert classify_route("O que o Copom decidiu sobre a Selic?") == RouteProfile.CURRENT_TOPIC

    def test_platform_beats_current_topic(self):
        message = "Como usar o quiz sobre eleições?"
        assert not is_current_topic_query(message)
        assert classify_route(message) == RouteProfile.PLATFORM

    def test_general_question_uses_default(self):
        assert classify_route("Explique o que é federalismo") == RouteProfile.DEFAULT

    def test_image_always_takes_vision_route(self):
        assert classify_route("O que diz esta charge?", has_image=True) == RouteProfile.VISION
        assert classify_route("Como usar o ranking da plataforma?", has_image=True) == RouteProfile.VISION
        assert classify_route("O que diz esta charge?") == RouteProfile.DEFAULT


class TestSettingsValidation:
    def test_missing_provider_keys_exit(self, monkeypatch):
        monkeypatch.setattr(settings, "openrouter_api_key", "")
        monkeypatch.setattr(settings, "together_api_key", "")
        with pytest.raises(SystemExit) as exc:
            validate_settings_for_production()
        assert "OPENROUTER_API_KEY" in str(exc.value)

    def test_bad_day_boundary_exits(self, monkeypatch):
        monkeypatch.setattr(settings, "openrouter_api_key", "k")
        monkeypatch.setattr(settings, "quota_day_boundary", "america/sao_paulo")
        with pytest.raises(SystemExit) as exc:
            validate_settings_for_production()
        assert "QUOTA_DAY_BOUNDARY" in str(exc.value)

    def test_valid_settings_pass(self, monkeypatch):
        monkeypatch.setattr(settings, "openrouter_api_key", "k")
        monkeypatch.setattr(settings, "quota_day_boundary", "utc")
        monkeypatch.setattr(settings, "app_env", "development")
        validate_settings_for_production()
