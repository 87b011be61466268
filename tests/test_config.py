"""Tests for waypoint.config — DispatchConfig frozen dataclass."""

import pytest

from waypoint.config import DEFAULT_COMPLETION_TIMEOUT, DispatchConfig
from waypoint.errors import ConfigurationError


class TestDispatchConfig:
    def test_defaults(self) -> None:
        cfg = DispatchConfig()

        assert cfg.whitelist_schemes == frozenset()
        assert cfg.whitelist_hosts == frozenset()
        assert cfg.blacklist_schemes == frozenset()
        assert cfg.blacklist_hosts == frozenset()
        assert cfg.excluded_schemes == frozenset()
        assert cfg.excluded_hosts == frozenset()
        assert cfg.completion_timeout == DEFAULT_COMPLETION_TIMEOUT == 0.3

    def test_override(self) -> None:
        cfg = DispatchConfig(whitelist_hosts=frozenset({"a.example"}), completion_timeout=1.5)

        assert cfg.whitelist_hosts == {"a.example"}
        assert cfg.completion_timeout == 1.5

    def test_frozen(self) -> None:
        cfg = DispatchConfig()

        with pytest.raises(AttributeError):
            cfg.completion_timeout = 2.0  # type: ignore[misc]

    def test_sets_normalized_from_iterables(self) -> None:
        cfg = DispatchConfig(blacklist_hosts=["a", "b", "a"], excluded_schemes=("http",))  # type: ignore[arg-type]

        assert cfg.blacklist_hosts == frozenset({"a", "b"})
        assert isinstance(cfg.blacklist_hosts, frozenset)
        assert cfg.excluded_schemes == frozenset({"http"})

    def test_sets_lowercased(self) -> None:
        cfg = DispatchConfig(whitelist_hosts={"Shop.Example"}, blacklist_schemes=frozenset({"HTTP"}))
        assert cfg.whitelist_hosts == frozenset({"shop.example"})
        assert cfg.blacklist_schemes == frozenset({"http"})

    def test_single_string_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="single string"):
            DispatchConfig(whitelist_schemes="shop")  # type: ignore[arg-type]

    def test_negative_timeout_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="completion_timeout"):
            DispatchConfig(completion_timeout=-1)

    def test_zero_timeout_allowed(self) -> None:
        assert DispatchConfig(completion_timeout=0).completion_timeout == 0
