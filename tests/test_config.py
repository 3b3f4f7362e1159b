import pytest
from globeassist.config import Config, collect_keys, load_config

POOL_VARS = [
    "OPENROUTER_API_KEYS",
    "OPENROUTER_API_KEY_SONAR_SEARCH",
    "OPENROUTER_API_KEY",
    "SERPER_API_KEYS",
    "SERPER_GOOGLE_SEARCH_API",
] + [f"OPENROUTER_API_KEY_{i}" for i in range(1, 21)] + [
    f"SERPER_API_KEY_{i}" for i in range(1, 21)
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in POOL_VARS:
        monkeypatch.delenv(name, raising=False)
    for name in ["PORT", "HOST", "LOG_LEVEL", "MAX_RETRIES", "DATABASE_PATH"]:
        monkeypatch.delenv(name, raising=False)


def test_config_loads_valid_env(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEYS", "key1,key2")
    monkeypatch.setenv("SERPER_API_KEYS", "s1")

    config = load_config(use_dotenv=False)

    assert config.llm_api_keys == ["key1", "key2"]
    assert config.search_api_keys == ["s1"]
    assert config.port == 8000
    assert config.host == "0.0.0.0"
    assert config.max_retries == 3
    assert config.default_cooldown_seconds == 60.0
    assert config.openrouter_base_url == "https://openrouter.ai/api/v1"
    assert config.serper_base_url == "https://google.serper.dev"
    assert config.log_level == "INFO"


def test_config_missing_keys_is_not_a_load_error():
    config = load_config(use_dotenv=False)

    assert config.llm_api_keys == []
    assert config.search_api_keys == []


def test_config_custom_values(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEYS", "custom_key")
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setenv("HOST", "127.0.0.1")
    monkeypatch.setenv("MAX_RETRIES", "5")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("DATABASE_PATH", "/tmp/cache.db")

    config = load_config(use_dotenv=False)

    assert config.port == 9000
    assert config.host == "127.0.0.1"
    assert config.max_retries == 5
    assert config.log_level == "DEBUG"
    assert config.database_path == "/tmp/cache.db"


def test_config_strips_whitespace(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEYS", " key1 , key2 ")

    config = load_config(use_dotenv=False)

    assert config.llm_api_keys == ["key1", "key2"]


def test_collect_keys_merges_numbered_and_legacy(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEYS", "a,b")
    monkeypatch.setenv("OPENROUTER_API_KEY_1", "c")
    monkeypatch.setenv("OPENROUTER_API_KEY_3", "b")
    monkeypatch.setenv("OPENROUTER_API_KEY_SONAR_SEARCH", "d")

    keys = collect_keys(
        "OPENROUTER_API_KEYS", legacy_vars=("OPENROUTER_API_KEY_SONAR_SEARCH",)
    )

    assert keys == ["a", "b", "c", "d"]


def test_plain_openrouter_key_joins_the_pool(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEYS", "a")
    monkeypatch.setenv("OPENROUTER_API_KEY", "plain")
    monkeypatch.setenv("OPENROUTER_API_KEY_SONAR_SEARCH", "a")

    config = load_config(use_dotenv=False)

    assert config.llm_api_keys == ["a", "plain"]


def test_config_rejects_bad_numbers(monkeypatch):
    monkeypatch.setenv("MAX_RETRIES", "zero")

    with pytest.raises(ValueError):
        load_config(use_dotenv=False)


def test_config_rejects_out_of_range_values():
    with pytest.raises(ValueError, match="MAX_RETRIES"):
        Config(max_retries=0)
    with pytest.raises(ValueError, match="REQUEST_TIMEOUT_SECONDS"):
        Config(request_timeout_seconds=0)
