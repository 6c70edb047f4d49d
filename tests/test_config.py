"""Tests for SembleConfig, TOML loading, env vars and CLI overrides."""

from __future__ import annotations

import pytest

from semble_recs import config as config_module
from semble_recs.api import SembleAPI
from semble_recs.config import SembleConfig, load_config, merge_cli_overrides
from semble_recs.errors import ConfigError

ENV_VARS = (
    "SEMBLE_API_URL",
    "SEMBLE_API_TIMEOUT",
    "SEMBLE_NUM_CLUSTERS",
    "SEMBLE_SIMILARITY_THRESHOLD",
    "SEMBLE_MAX_CLUSTERS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    """Isolate tests from the caller's env and home config."""
    for key in ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(config_module, "GLOBAL_CONFIG_PATH", tmp_path / "missing.toml")


class TestDefaults:
    def test_clustering(self):
        cfg = SembleConfig()
        assert cfg.clustering.num_clusters == 5
        assert cfg.clustering.similarity_threshold == 0.3
        assert cfg.clustering.top_keywords == 5

    def test_recommendations(self):
        cfg = SembleConfig()
        assert cfg.recommendations.max_clusters == 5
        assert cfg.recommendations.results_per_cluster == 10
        assert cfg.recommendations.search_threshold == 0.4
        assert cfg.recommendations.similar_threshold == 0.5
        assert cfg.recommendations.cards_per_cluster == 3

    def test_overlap(self):
        cfg = SembleConfig()
        assert cfg.overlap.max_workers == 5
        assert cfg.overlap.top_users == 20
        assert cfg.overlap.top_collections == 10

    def test_api(self):
        cfg = SembleConfig()
        assert cfg.api.base_url == "https://api.semble.so"
        assert cfg.api.page_size == 50

    def test_to_client(self):
        client = SembleConfig().to_client()
        assert isinstance(client, SembleAPI)
        assert client.base_url == "https://api.semble.so"


class TestLoadConfig:
    def test_explicit_path(self, tmp_path):
        path = tmp_path / "custom.toml"
        path.write_text("[clustering]\nnum_clusters = 8\nsimilarity_threshold = 0.2\n")
        cfg = load_config(path)
        assert cfg.clustering.num_clusters == 8
        assert cfg.clustering.similarity_threshold == 0.2
        assert cfg.recommendations.max_clusters == 5

    def test_missing_path_returns_defaults(self, tmp_path):
        cfg = load_config(tmp_path / "nope.toml")
        assert cfg == SembleConfig()

    def test_searches_cwd(self, tmp_path, monkeypatch):
        (tmp_path / ".semble.toml").write_text('[api]\nbase_url = "https://local.test"\n')
        monkeypatch.chdir(tmp_path)
        assert load_config().api.base_url == "https://local.test"

    def test_global_config(self, tmp_path, monkeypatch):
        global_path = tmp_path / "global.toml"
        global_path.write_text("[recommendations]\nmax_clusters = 2\n")
        monkeypatch.setattr(config_module, "GLOBAL_CONFIG_PATH", global_path)
        monkeypatch.chdir(tmp_path)
        assert load_config().recommendations.max_clusters == 2

    def test_invalid_toml_falls_back(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("[clustering\nnum_clusters = ")
        assert load_config(path) == SembleConfig()

    def test_invalid_values_fall_back(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text('[clustering]\nnum_clusters = "lots"\n')
        assert load_config(path) == SembleConfig()


class TestEnvVars:
    def test_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SEMBLE_API_URL", "https://env.test")
        monkeypatch.setenv("SEMBLE_NUM_CLUSTERS", "7")
        monkeypatch.setenv("SEMBLE_SIMILARITY_THRESHOLD", "0.15")
        cfg = load_config(tmp_path / "none.toml")
        assert cfg.api.base_url == "https://env.test"
        assert cfg.clustering.num_clusters == 7
        assert cfg.clustering.similarity_threshold == 0.15

    def test_env_beats_toml(self, tmp_path, monkeypatch):
        path = tmp_path / "c.toml"
        path.write_text("[recommendations]\nmax_clusters = 2\n")
        monkeypatch.setenv("SEMBLE_MAX_CLUSTERS", "9")
        assert load_config(path).recommendations.max_clusters == 9

    def test_bad_env_value_raises(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SEMBLE_NUM_CLUSTERS", "many")
        with pytest.raises(ConfigError):
            load_config(tmp_path / "none.toml")


class TestMergeCliOverrides:
    def test_only_non_none_applied(self):
        cfg = merge_cli_overrides(SembleConfig(), num_clusters=3, similarity_threshold=None)
        assert cfg.clustering.num_clusters == 3
        assert cfg.clustering.similarity_threshold == 0.3

    def test_recommendation_overrides(self):
        cfg = merge_cli_overrides(SembleConfig(), max_clusters=1, results_per_cluster=25)
        assert cfg.recommendations.max_clusters == 1
        assert cfg.recommendations.results_per_cluster == 25

    def test_unknown_key_raises(self):
        with pytest.raises(ConfigError):
            merge_cli_overrides(SembleConfig(), colour="blue")

    def test_invalid_value_raises_config_error(self):
        with pytest.raises(ConfigError, match="Invalid option"):
            merge_cli_overrides(SembleConfig(), num_clusters=-1)

    def test_invalid_recommendation_value_raises(self):
        with pytest.raises(ConfigError):
            merge_cli_overrides(SembleConfig(), max_clusters=-2)

    def test_overlap_overrides(self):
        cfg = merge_cli_overrides(SembleConfig(), top_users=3, top_collections=4)
        assert cfg.overlap.top_users == 3
        assert cfg.overlap.top_collections == 4
