"""Config 클래스 테스트"""

import importlib
import os
from unittest.mock import patch

import pytest


def reload_config_with_env(env_vars: dict):
    """환경변수를 설정하고 config 모듈 재로드

    dotenv.load_dotenv를 mock하여 .env 파일 로드를 방지
    """
    with patch.dict(os.environ, env_vars, clear=True):
        with patch("dotenv.load_dotenv"):
            import threadcast.config as config_module
            importlib.reload(config_module)
            return config_module


@pytest.fixture(autouse=True)
def restore_config():
    """다른 모듈이 보는 설정이 바뀌지 않도록 테스트 후 원래 환경으로 재로드"""
    yield
    with patch("dotenv.load_dotenv"):
        import threadcast.config as config_module
        importlib.reload(config_module)


class TestConfigValidation:
    """설정 검증 테스트"""

    def test_validate_missing_slack_bot_token(self):
        """SLACK_BOT_TOKEN 누락 시 ConfigurationError 발생"""
        config_module = reload_config_with_env({})

        with pytest.raises(config_module.ConfigurationError) as exc_info:
            config_module.Config.validate()

        assert "SLACK_BOT_TOKEN" in str(exc_info.value)

    def test_validate_missing_slack_app_token(self):
        """SLACK_APP_TOKEN 누락 시 ConfigurationError 발생"""
        config_module = reload_config_with_env({"SLACK_BOT_TOKEN": "xoxb-test"})

        with pytest.raises(config_module.ConfigurationError) as exc_info:
            config_module.Config.validate()

        assert exc_info.value.missing_vars == ["SLACK_APP_TOKEN"]

    def test_validate_success_with_required_vars(self):
        """필수 환경변수가 모두 있으면 검증 통과"""
        config_module = reload_config_with_env({
            "SLACK_BOT_TOKEN": "xoxb-test",
            "SLACK_APP_TOKEN": "xapp-test"
        })

        # 예외 없이 통과해야 함
        config_module.Config.validate()


class TestStreamConfig:
    """스트리밍 설정 테스트"""

    def test_defaults(self):
        config_module = reload_config_with_env({})
        stream = config_module.Config.stream

        assert stream.flush_delay_ms == 500
        assert stream.tool_elapsed_min_seconds == 3
        assert stream.subagent_update_interval == 5.0
        assert stream.context_prompt_timeout == 30.0
        assert stream.repurpose_task_list is True
        assert stream.repurpose_max_length == 0
        assert stream.detailed_tools is True

    def test_env_overrides(self):
        config_module = reload_config_with_env({
            "STREAM_FLUSH_DELAY_MS": "250",
            "STREAM_REPURPOSE_TASK_LIST": "false",
            "STREAM_DETAILED_TOOLS": "FALSE",
            "EMOJI_MINIMIZE_TOGGLE": "small_red_triangle_down",
        })

        assert config_module.Config.stream.flush_delay_ms == 250
        assert config_module.Config.stream.repurpose_task_list is False
        assert config_module.Config.stream.detailed_tools is False
        assert config_module.Config.emoji.minimize_toggle == "small_red_triangle_down"

    def test_slack_limits(self):
        config_module = reload_config_with_env({"SLACK_MAX_POST_LENGTH": "4000"})

        assert config_module.Config.slack.max_post_length == 4000
        assert config_module.Config.slack.hard_threshold == 10000


class TestConfigPaths:
    """경로 설정 테스트"""

    def test_log_path_from_env(self):
        config_module = reload_config_with_env({})
        with patch.dict(os.environ, {"LOG_PATH": "/var/log/threadcast"}):
            assert config_module.Config.get_log_path() == "/var/log/threadcast"

    def test_log_path_defaults_to_cwd(self, tmp_path, monkeypatch):
        config_module = reload_config_with_env({})
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("LOG_PATH", raising=False)
        assert config_module.Config.get_log_path() == str(tmp_path / "logs")

    def test_parse_bool(self):
        from threadcast.config import _parse_bool

        assert _parse_bool("True") is True
        assert _parse_bool("yes") is False
        assert _parse_bool(None, True) is True
