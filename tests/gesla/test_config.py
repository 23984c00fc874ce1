"""Tests for settings loading and logging setup."""

import logging

import pytest

from gesla.config import DEFAULT_SETTINGS, load_settings
from gesla.exceptions import ConfigurationError
from gesla.logging_utils import setup_logging


class TestLoadSettings:
    """Test suite for load_settings."""

    def test_missing_file_gives_defaults(self, tmp_path):
        settings = load_settings(tmp_path / 'absent.yaml')
        assert settings == DEFAULT_SETTINGS
        assert settings is not DEFAULT_SETTINGS

    def test_partial_file_merged(self, tmp_path):
        settings_file = tmp_path / 'settings.yaml'
        settings_file.write_text(
            "filters:\n"
            "  gesla_removal: true\n"
            "loader:\n"
            "  max_workers: 4\n"
        )
        settings = load_settings(settings_file)

        assert settings['filters']['gesla_removal'] is True
        assert settings['filters']['contributor_removal'] == []
        assert settings['loader']['max_workers'] == 4
        assert settings['loader']['collision'] == 'raise'
        assert settings['data']['header_length'] == 41

    def test_defaults_not_mutated(self, tmp_path):
        settings_file = tmp_path / 'settings.yaml'
        settings_file.write_text("filters:\n  contributor_removal: [5]\n")
        load_settings(settings_file)
        assert DEFAULT_SETTINGS['filters']['contributor_removal'] == []

    def test_empty_file(self, tmp_path):
        settings_file = tmp_path / 'settings.yaml'
        settings_file.write_text('')
        assert load_settings(settings_file) == DEFAULT_SETTINGS

    def test_invalid_yaml(self, tmp_path):
        settings_file = tmp_path / 'settings.yaml'
        settings_file.write_text("filters: [unclosed\n")
        with pytest.raises(ConfigurationError):
            load_settings(settings_file)

    def test_not_a_mapping(self, tmp_path):
        settings_file = tmp_path / 'settings.yaml'
        settings_file.write_text("- just\n- a list\n")
        with pytest.raises(ConfigurationError, match='mapping'):
            load_settings(settings_file)


@pytest.mark.usefixtures('restore_root_logger')
class TestSetupLogging:
    """Test suite for setup_logging."""

    def test_level_by_name(self):
        setup_logging(level='debug')
        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self):
        setup_logging(level='chatty')
        assert logging.getLogger().level == logging.INFO

    def test_log_file(self, tmp_path):
        log_file = tmp_path / 'logs' / 'gesla.log'
        setup_logging(log_file=log_file)
        logging.getLogger('gesla.test').info('written to file')
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert 'written to file' in log_file.read_text()
