"""Tests for configuration loading, validation and CLI overrides."""

import argparse

import pytest
import yaml

from config_loader import DEFAULT_CONFIG, ConfigLoader, get_nested
from logger import _sanitize_config


@pytest.fixture
def outline_env(monkeypatch):
    monkeypatch.setenv('OUTLINE_DOMAIN', 'https://docs.example.com')
    monkeypatch.setenv('OUTLINE_API_KEY', 'ol_api_secret')


def write_yaml(tmp_path, data):
    path = tmp_path / 'config.yaml'
    path.write_text(yaml.safe_dump(data), encoding='utf-8')
    return str(path)


def valid_config(export_root, **overrides):
    config = ConfigLoader._substitute_env_vars_recursive(DEFAULT_CONFIG)
    config['outline']['base_url'] = 'https://docs.example.com'
    config['outline']['api_key'] = 'key'
    config['source']['export_path'] = str(export_root)
    for path, value in overrides.items():
        section, key = path.split('__')
        config[section][key] = value
    return config


class TestLoad:

    def test_defaults_take_credentials_from_environment(self, outline_env):
        config = ConfigLoader.load()

        assert config['outline']['base_url'] == 'https://docs.example.com'
        assert config['outline']['api_key'] == 'ol_api_secret'
        assert config['source']['export_path'] == './slite-backup/channels'
        assert config['migration']['attachment_key_mode'] == 'scoped'
        assert config['advanced']['max_retries'] == 3

    def test_unset_variables_are_left_in_place(self, monkeypatch):
        monkeypatch.delenv('OUTLINE_DOMAIN', raising=False)
        config = ConfigLoader.load()
        assert config['outline']['base_url'] == '${OUTLINE_DOMAIN}'

    def test_file_is_merged_over_defaults(self, tmp_path, outline_env):
        path = write_yaml(tmp_path, {
            'source': {'export_path': '/data/channels'},
            'advanced': {'retry_policy': 'transient'}
        })

        config = ConfigLoader.load(path)

        assert config['source']['export_path'] == '/data/channels'
        assert config['source']['preamble_lines'] == 6
        assert config['advanced']['retry_policy'] == 'transient'
        assert config['advanced']['request_timeout'] == 30

    def test_defaults_are_not_mutated(self, tmp_path, outline_env):
        ConfigLoader.load(write_yaml(tmp_path, {'source': {'max_depth': 3}}))
        assert DEFAULT_CONFIG['source']['max_depth'] == 64

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigLoader.load(str(tmp_path / 'absent.yaml'))

    def test_file_must_hold_a_mapping(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text("- just\n- a list\n", encoding='utf-8')
        with pytest.raises(ValueError):
            ConfigLoader.load(str(path))


class TestValidate:

    def test_valid_configuration(self, export_root):
        ConfigLoader.validate(valid_config(export_root))

    def test_credentials_required_for_real_runs(self, export_root):
        config = valid_config(export_root)
        config['outline']['api_key'] = '${OUTLINE_API_KEY}'

        with pytest.raises(ValueError, match='OUTLINE_API_KEY'):
            ConfigLoader.validate(config)

    def test_dry_run_needs_no_credentials(self, export_root):
        config = valid_config(export_root, migration__dry_run=True)
        config['outline']['base_url'] = ''
        config['outline']['api_key'] = ''

        ConfigLoader.validate(config)

    @pytest.mark.parametrize('overrides, message', [
        ({'outline__base_url': 'ftp://docs.example.com'}, 'http or https'),
        ({'source__preamble_lines': -1}, 'preamble_lines'),
        ({'source__max_depth': 0}, 'max_depth'),
        ({'migration__attachment_key_mode': 'hashed'}, 'attachment_key_mode'),
        ({'migration__dry_run': 'yes'}, 'dry_run'),
        ({'advanced__request_timeout': 0}, 'request_timeout'),
        ({'advanced__max_retries': 0}, 'max_retries'),
        ({'advanced__retry_backoff_factor': -1}, 'retry_backoff_factor'),
        ({'advanced__rate_limit': -0.5}, 'rate_limit'),
        ({'advanced__retry_policy': 'sometimes'}, 'retry_policy')
    ])
    def test_invalid_values(self, export_root, overrides, message):
        with pytest.raises(ValueError, match=message):
            ConfigLoader.validate(valid_config(export_root, **overrides))

    def test_export_path_must_exist(self, tmp_path):
        with pytest.raises(ValueError, match='export_path'):
            ConfigLoader.validate(valid_config(tmp_path / 'missing'))


class TestMergeWithArgs:

    def test_cli_arguments_take_precedence(self, export_root):
        args = argparse.Namespace(
            source='/other/channels',
            dry_run=True,
            attachment_key_mode='literal',
            report='out.json',
            log_file='run.log'
        )

        merged = ConfigLoader.merge_with_args(valid_config(export_root), args)

        assert merged['source']['export_path'] == '/other/channels'
        assert merged['migration']['dry_run'] is True
        assert merged['migration']['attachment_key_mode'] == 'literal'
        assert merged['migration']['report_path'] == 'out.json'
        assert merged['logging']['file'] == 'run.log'

    def test_unset_arguments_keep_file_values(self, export_root):
        config = valid_config(export_root, migration__dry_run=True)
        args = argparse.Namespace(source=None, dry_run=None, attachment_key_mode=None, report=None, log_file=None)

        merged = ConfigLoader.merge_with_args(config, args)

        assert merged == config
        assert merged is not config

    def test_explicit_no_dry_run_overrides_file(self, export_root):
        config = valid_config(export_root, migration__dry_run=True)
        merged = ConfigLoader.merge_with_args(config, argparse.Namespace(dry_run=False))
        assert merged['migration']['dry_run'] is False


def test_get_nested():
    config = {'outline': {'base_url': 'https://x', 'nested': {'deep': 1}}}

    assert get_nested(config, 'outline.base_url') == 'https://x'
    assert get_nested(config, 'outline.nested.deep') == 1
    assert get_nested(config, 'outline.missing', 'fallback') == 'fallback'
    assert get_nested(config, 'outline.base_url.deeper') is None


def test_sanitized_config_hides_api_key():
    sanitized = _sanitize_config({'outline': {'base_url': 'https://x', 'api_key': 'ol_api_secret'}})

    assert sanitized['outline']['api_key'] == '***REDACTED***'
    assert sanitized['outline']['base_url'] == 'https://x'
