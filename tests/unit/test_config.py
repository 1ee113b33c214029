"""
Unit Tests for Configuration
YAML loading, environment overrides and reference table validation
"""
import copy

import pytest
import yaml
from pydantic import ValidationError

from cadence.core.config import ConfigManager, Settings
from cadence.domain.models.cadence_config import CadenceConfig, load_cadence_config
from cadence.domain.models.cadence_template import ActionType, CadenceType
from cadence.domain.models.call_outcome import CallOutcome
from cadence.domain.models.lead import CadenceStateName, TemperatureBand


@pytest.fixture
def raw_cadence():
    return copy.deepcopy(ConfigManager(env="test").get("cadence"))


class TestDefaultConfig:
    """Tests for the shipped reference tables"""

    def test_every_outcome_is_configured(self, config):
        assert set(config.outcomes) == set(CallOutcome)

    def test_deceased_exits_dead(self, config):
        assert config.outcomes[CallOutcome.DECEASED].exit_state == CadenceStateName.EXITED_DEAD

    def test_templates(self, config):
        hot = config.templates[CadenceType.HOT]

        assert hot.total_steps == 7
        assert [s.day_offset for s in hot.steps] == [0, 1, 2, 4, 6, 9, 14]
        assert hot.step(3).action_type == ActionType.SMS
        assert hot.step(8) is None
        assert config.templates[CadenceType.WARM].total_steps == 5
        assert config.templates[CadenceType.ICE].total_days == 90

    def test_queue_tiers(self, config):
        assert sorted(config.queue.tiers) == list(range(1, 10))
        assert config.queue.tiers[8].bucket == "get-numbers"

    def test_limits(self, config):
        assert config.phases.max_enrollment_cycles == 6
        assert config.re_enrollment.base_wait_days[TemperatureBand.ICE] == 90
        assert config.re_enrollment.score_multipliers[0].min_score == 80


class TestConfigValidation:
    """Tests for CadenceConfig validation"""

    def test_missing_outcome_is_rejected(self, raw_cadence):
        del raw_cadence["outcomes"]["BUSY"]

        with pytest.raises(ValidationError, match="BUSY"):
            CadenceConfig.model_validate(raw_cadence)

    def test_diminishing_returns_must_decrease(self, raw_cadence):
        raw_cadence["scoring"]["diminishing_returns"] = [1.0, 0.5, 0.5]

        with pytest.raises(ValidationError):
            CadenceConfig.model_validate(raw_cadence)

    def test_queue_tiers_must_be_complete(self, raw_cadence):
        del raw_cadence["queue"]["tiers"][9]

        with pytest.raises(ValidationError):
            CadenceConfig.model_validate(raw_cadence)

    def test_settings_override_business_hours(self):
        settings = Settings(business_timezone="America/Chicago", business_hour=8)

        config = load_cadence_config(ConfigManager(env="test"), settings)

        assert config.business.timezone == "America/Chicago"
        assert config.business.hour == 8

    def test_missing_section_is_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="cadence"):
            load_cadence_config(ConfigManager(config_dir=tmp_path))


class TestConfigManager:
    """Tests for YAML merging and lookups"""

    @pytest.fixture
    def config_dir(self, tmp_path):
        (tmp_path / "default.yaml").write_text(yaml.safe_dump({
            "cadence": {"business": {"timezone": "UTC", "hour": 9}},
            "supabase": {"url": "${LCE_TEST_SUPABASE_URL}", "schema": "public"},
        }))
        (tmp_path / "staging.yaml").write_text(yaml.safe_dump({
            "cadence": {"business": {"hour": 10}},
        }))
        return tmp_path

    def test_environment_file_is_deep_merged(self, config_dir):
        manager = ConfigManager(env="staging", config_dir=config_dir)

        assert manager.get("cadence.business.hour") == 10
        assert manager.get("cadence.business.timezone") == "UTC"

    def test_env_vars_are_substituted(self, config_dir, monkeypatch):
        monkeypatch.setenv("LCE_TEST_SUPABASE_URL", "https://example.supabase.co")

        manager = ConfigManager(config_dir=config_dir)

        assert manager.get("supabase.url") == "https://example.supabase.co"

    def test_unset_env_var_is_left_as_is(self, config_dir, monkeypatch):
        monkeypatch.delenv("LCE_TEST_SUPABASE_URL", raising=False)

        manager = ConfigManager(config_dir=config_dir)

        assert manager.get("supabase.url") == "${LCE_TEST_SUPABASE_URL}"

    def test_get_with_default(self, config_dir):
        manager = ConfigManager(config_dir=config_dir)

        assert manager.get("supabase.schema") == "public"
        assert manager.get("supabase.missing", "fallback") == "fallback"
        assert manager.get("cadence.business.hour.deeper") is None
