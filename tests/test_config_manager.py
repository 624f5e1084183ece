"""Tests for the YAML configuration manager."""

import yaml

from config.config_manager import ConfigManager
from config.constants import DEFAULT_DATA_API_URL, ENV_DATA_API_KEY, ENV_DATA_API_URL


def test_missing_file_is_created_with_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv(ENV_DATA_API_URL, raising=False)
    monkeypatch.delenv(ENV_DATA_API_KEY, raising=False)
    path = tmp_path / 'config.yml'

    config = ConfigManager(str(path))

    assert path.exists()
    assert config.get_data_api_url() == DEFAULT_DATA_API_URL
    assert config.get_max_workers() == 8
    assert config.get_dataset_bounds()['GLAD']['default_start_date'] == '2024-07-01'


def test_file_values_are_merged_over_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv(ENV_DATA_API_URL, raising=False)
    path = tmp_path / 'config.yml'
    path.write_text(yaml.safe_dump({'data_api': {'timeout': 5}, 'widgets': {'max_workers': 2}}))

    config = ConfigManager(str(path))

    assert config.get_request_timeout() == 5
    assert config.get_max_workers() == 2
    assert config.get_dataset_version() == 'latest'
    assert config.get('data_api.missing', 'fallback') == 'fallback'


def test_environment_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / 'config.yml'
    path.write_text(yaml.safe_dump({'data_api': {'base_url': 'https://from-file.test', 'api_key': 'file-key'}}))
    monkeypatch.setenv(ENV_DATA_API_URL, 'https://from-env.test')
    monkeypatch.setenv(ENV_DATA_API_KEY, 'env-key')

    config = ConfigManager(str(path))

    assert config.get_data_api_url() == 'https://from-env.test'
    assert config.get_api_key() == 'env-key'


def test_set_and_save_round_trip(tmp_path, monkeypatch):
    monkeypatch.delenv(ENV_DATA_API_URL, raising=False)
    monkeypatch.delenv(ENV_DATA_API_KEY, raising=False)
    path = tmp_path / 'config.yml'

    config = ConfigManager(str(path))
    config.set('metadata.fetch_remote', True)
    config.set('logging.level', 'debug')
    assert config.save()

    reloaded = ConfigManager(str(path))
    assert reloaded.get_fetch_remote_metadata() is True
    assert reloaded.get_log_level() == 'DEBUG'
