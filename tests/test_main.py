"""
Tests for the command line entry point.
"""

import pytest

import main as cli
from pagesearch.utils.config import config_from_dict
from pagesearch.storage.database import IndexStore


def test_missing_config_file(tmp_path, capsys):
    assert cli.main(["--config", str(tmp_path / "nope.yaml"), "serve"]) == 1
    assert "not found" in capsys.readouterr().out


def test_invalid_config(tmp_path, capsys):
    path = tmp_path / "config.yaml"
    path.write_text("crawler:\n  parallelism: 0\n", encoding="utf-8")
    assert cli.main(["--config", str(path), "serve"]) == 1
    assert "Invalid configuration" in capsys.readouterr().out


def test_command_is_required(tmp_path):
    with pytest.raises(SystemExit):
        cli.main(["--config", str(tmp_path / "config.yaml")])


@pytest.mark.asyncio
async def test_index_with_missing_url_file(tmp_path):
    config = config_from_dict({"database": {"path": str(tmp_path / "index.db")}})
    assert await cli.SearchApp(config).index(str(tmp_path / "absent.txt")) == 1


@pytest.mark.asyncio
async def test_index_empty_list_creates_database(tmp_path):
    url_file = tmp_path / "urls.txt"
    url_file.write_text("# nothing yet\n", encoding="utf-8")
    db_path = tmp_path / "data" / "index.db"
    config = config_from_dict({
        "database": {"path": str(db_path)},
        "monitoring": {"metrics_enabled": False},
    })

    assert await cli.SearchApp(config).index(str(url_file)) == 0

    async with IndexStore(str(db_path)) as store:
        assert await store.get_stats() == {"pages": 0, "logged_urls": 0}


@pytest.mark.asyncio
async def test_index_with_undecodable_url_file(tmp_path):
    url_file = tmp_path / "urls.txt"
    url_file.write_bytes(b"https://a.example/\n\xff\xfe not utf-8\n")
    config = config_from_dict({"database": {"path": str(tmp_path / "index.db")}})
    assert await cli.SearchApp(config).index(str(url_file)) == 1
