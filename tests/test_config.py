"""
Tests for CLI configuration loading
"""
import json

from ticketops_cli.config import CLIConfig


def test_env_overrides_and_converts(tmp_path):
    config = CLIConfig(config_dir=str(tmp_path))

    config.load_from_env({
        "TICKETOPS_API_URL": "https://helpdesk.example.in/api/v1",
        "TICKETOPS_TIMEOUT": "12.5",
        "TICKETOPS_PAGE_SIZE": "50",
        "TICKETOPS_CACHE": "false",
        "TICKETOPS_VERBOSE": "yes",
    })

    assert config.api_base_url == "https://helpdesk.example.in/api/v1"
    assert config.timeout == 12.5
    assert config.page_size == 50
    assert config.cache_enabled is False
    assert config.verbose is True


def test_empty_env_values_are_ignored(tmp_path):
    config = CLIConfig(config_dir=str(tmp_path))
    config.load_from_env({"TICKETOPS_PAGE_SIZE": ""})
    assert config.page_size == 20


def test_file_round_trip_ignores_unknown_keys(tmp_path):
    config = CLIConfig(config_dir=str(tmp_path / "cfg"), page_size=35)
    path = config.save_to_file()

    data = json.loads(path.read_text())
    data["legacy_option"] = "x"
    path.write_text(json.dumps(data))

    loaded = CLIConfig(config_dir=str(tmp_path / "cfg"))
    assert loaded.load_from_file() is True
    assert loaded.page_size == 35
    assert not hasattr(loaded, "legacy_option")
    assert loaded.credentials_file == tmp_path / "cfg" / "credentials.json"


def test_missing_file(tmp_path):
    assert CLIConfig(config_dir=str(tmp_path)).load_from_file() is False
