import pytest
import yaml

from spiderrank.utils.config import (
    Config,
    ConfigManager,
    build_config,
    load_config,
    validate_config,
)


def write_config(tmp_path, data):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def test_defaults():
    config = Config()
    assert config.crawler.page_limit == 200
    assert config.crawler.concurrency == 10
    assert config.crawler.task_timeout == 15.0
    assert config.ranking.damping == 0.85
    assert config.ranking.max_iterations == 100
    assert config.ranking.convergence_threshold == 1e-4
    assert config.ranking.fallback_authority == 0.1
    assert config.storage.type == "file"


def test_load_overrides_and_keeps_defaults(tmp_path):
    path = write_config(tmp_path, {
        "crawler": {"seed_urls": ["https://example.com/"], "page_limit": 25},
        "storage": {"type": "redis", "redis": {"host": "cache", "key_prefix": "sr"}},
    })
    config = ConfigManager(str(path)).load_config()

    assert config.crawler.seed_urls == ["https://example.com/"]
    assert config.crawler.page_limit == 25
    assert config.crawler.concurrency == 10
    assert config.storage.redis == {"host": "cache", "key_prefix": "sr"}
    assert config.logging.level == "INFO"


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("", encoding="utf-8")
    assert ConfigManager(str(path)).load_config() == Config()


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        ConfigManager(str(tmp_path / "absent.yaml")).load_config()


def test_unknown_key_is_rejected():
    with pytest.raises(TypeError):
        build_config({"crawler": {"max_pages": 5}})


@pytest.mark.parametrize("section, values", [
    ("crawler", {"page_limit": 0}),
    ("crawler", {"concurrency": 0}),
    ("crawler", {"task_timeout": 0}),
    ("ranking", {"damping": 1.0}),
    ("ranking", {"max_iterations": 0}),
    ("storage", {"type": "cassandra"}),
])
def test_invalid_values(section, values):
    with pytest.raises(ValueError):
        validate_config(build_config({section: values}))


def test_seeds_required_only_when_asked():
    config = Config()
    validate_config(config)
    with pytest.raises(ValueError, match="seed"):
        validate_config(config, require_seeds=True)


def test_load_config_helper(tmp_path):
    path = write_config(tmp_path, {"ranking": {"damping": 0.9}})
    assert load_config(str(path)).ranking.damping == 0.9
