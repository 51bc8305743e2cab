"""
测试配置与验证器
"""
import pytest

from nested_tree.config import SystemSettings, ConfigValidator, GUARDED_FIELDS
from nested_tree.exceptions import ConfigError, ValidationError


def test_default_settings():
    settings = SystemSettings()

    assert settings.cache_ttl_day == 86400
    assert settings.cache_ttl_long == 604800
    assert settings.storage_backend == "memory"
    assert settings.cache_backend == "memory"
    assert settings.strict_flush is False
    assert settings.ttl_for("day") == 86400
    assert settings.ttl_for("long") == 604800


def test_from_dict_ignores_unknown_keys():
    settings = SystemSettings.from_dict({"log_level": "debug", "unknown": 1})

    assert settings.log_level == "DEBUG"
    assert "unknown" not in settings.to_dict()


def test_sqlite_default_path(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    settings = SystemSettings(storage_backend="sqlite", system_name="My Tree")

    assert settings.storage_path.endswith("my_tree.db")


@pytest.mark.parametrize("config, key", [
    ({"log_level": "LOUD"}, "log_level"),
    ({"storage_backend": "redis"}, "storage_backend"),
    ({"cache_backend": "memcached"}, "cache_backend"),
    ({"cache_ttl_day": 0}, "cache_ttl_day"),
    ({"cache_ttl_long": -5}, "cache_ttl_long"),
    ({"cache_max_entries": -1}, "cache_max_entries"),
    ({"cache_prefix": "a:b"}, "cache_prefix"),
    ({"cache_prefix": ""}, "cache_prefix"),
])
def test_invalid_settings(config, key):
    with pytest.raises(ConfigError) as exc_info:
        SystemSettings.from_dict(config)
    assert exc_info.value.details["config_key"] == key


def test_unknown_ttl_tier():
    with pytest.raises(ConfigError):
        SystemSettings().ttl_for("week")


def test_validate_system_config():
    validator = ConfigValidator()

    assert validator.validate_system_config({"storage_backend": "sqlite", "storage_path": "x.db"})
    with pytest.raises(ValidationError):
        validator.validate_system_config({"storage_backend": "mysql"})
    with pytest.raises(ValidationError):
        validator.validate_system_config(["not", "a", "dict"])


def test_clean_node_payload_strips_guarded_fields():
    validator = ConfigValidator()
    payload = {field: 1 for field in GUARDED_FIELDS}
    payload.update({"name": "节点", "weight": 1000})

    cleaned = validator.clean_node_payload(payload)

    assert cleaned == {"name": "节点", "weight": 1000}
    assert validator.clean_node_payload(None) == {}


def test_clean_node_payload_rejects_bad_names():
    validator = ConfigValidator()

    with pytest.raises(ValidationError):
        validator.clean_node_payload({"bad name": 1})
    with pytest.raises(ValidationError):
        validator.clean_node_payload("name=1")
