"""
Tests for configuration loading and validation.
"""

import pytest

from pagesearch.utils.config import (
    Config,
    ConfigError,
    ConfigManager,
    config_from_dict,
    load_config,
)


def write_config(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


class TestLoadConfig:

    def test_empty_file_gives_defaults(self, tmp_path):
        config = load_config(write_config(tmp_path, ""))
        assert config == Config()
        assert config.crawler.parallelism == 3
        assert config.crawler.politeness_delay == 0.2
        assert config.crawler.recrawl_interval == 604800
        assert config.crawler.max_redirects == 10
        assert config.converters.pdf_command == ["pdftotext", "-", "-"]

    def test_overrides(self, tmp_path):
        path = write_config(tmp_path, """
crawler:
  parallelism: 8
  politeness_delay: 1.5
database:
  path: /tmp/other.db
converters:
  html_command: [html2text]
""")
        config = load_config(path)
        assert config.crawler.parallelism == 8
        assert config.crawler.politeness_delay == 1.5
        assert config.crawler.max_redirects == 10
        assert config.database.path == "/tmp/other.db"
        assert config.converters.html_command == ["html2text"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "absent.yaml"))

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(write_config(tmp_path, "crawler: [unclosed"))

    def test_manager_requires_load(self, tmp_path):
        manager = ConfigManager(write_config(tmp_path, ""))
        with pytest.raises(ValueError):
            manager.config
        manager.load_config()
        assert manager.config.server.port == 8000


class TestValidation:

    @pytest.mark.parametrize("data", [
        {"crawler": {"parallelism": 0}},
        {"crawler": {"politeness_delay": -1}},
        {"crawler": {"request_timeout": 0}},
        {"crawler": {"max_redirects": -1}},
        {"crawler": {"recrawl_interval": -5}},
        {"converters": {"pdf_command": []}},
        {"converters": {"html_command": "pandoc"}},
        {"server": {"port": 70000}},
        {"logging": {"level": "CHATTY"}},
    ])
    def test_invalid_values(self, data):
        with pytest.raises(ConfigError):
            config_from_dict(data)

    def test_unknown_key(self):
        with pytest.raises(ConfigError, match="paralelism"):
            config_from_dict({"crawler": {"paralelism": 2}})

    def test_unknown_section(self):
        with pytest.raises(ConfigError, match="cache"):
            config_from_dict({"cache": {"host": "localhost"}})

    def test_section_must_be_mapping(self):
        with pytest.raises(ConfigError):
            config_from_dict({"crawler": 5})

    def test_zero_recrawl_interval_allowed(self):
        assert config_from_dict({"crawler": {"recrawl_interval": 0}}).crawler.recrawl_interval == 0
