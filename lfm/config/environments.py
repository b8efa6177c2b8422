"""
Environment Configuration
=========================

Manages test/prod environment separation for the LFM engine.

Usage:
    from lfm.config import get_environment_config, TEST_ENV, PROD_ENV

    # Get test environment config
    config = get_environment_config(TEST_ENV)
    print(config.embedding_cache_size)  # 50

    # Switch global environment
    set_current_environment(PROD_ENV)
    config = get_current_environment()
    print(config.name)  # "prod"
"""

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional


class Environment(Enum):
    """Available environments."""
    TEST = "test"
    PROD = "prod"


# Convenience aliases
TEST_ENV = Environment.TEST
PROD_ENV = Environment.PROD


@dataclass(frozen=True)
class EnvironmentConfig:
    """
    Configuration for a specific environment.

    TTLs and intervals are expressed in seconds.

    Attributes:
        name: Environment name ("test" or "prod")
        description: Human-readable description
        ai_response_cache_size: Capacity of the generated-text cache
        ai_response_ttl: TTL for generated text
        embedding_cache_size: Capacity of the embedding cache
        embedding_ttl: TTL for embeddings
        similarity_cache_size: Capacity of the similarity cache
        similarity_ttl: TTL for similarity computations
        semantic_cache_size: Capacity of the semantic (embedding-keyed) cache
        semantic_ttl: TTL for semantic cache entries
        sweep_interval: Seconds between background expiry sweeps
        ensemble_member_timeout: Timeout per ensemble member call
        weights_path: Optional override for the weights YAML file
    """
    name: str
    description: str

    ai_response_cache_size: int = 500
    ai_response_ttl: float = 1800.0
    embedding_cache_size: int = 200
    embedding_ttl: float = 3600.0
    similarity_cache_size: int = 1000
    similarity_ttl: float = 900.0
    semantic_cache_size: int = 200
    semantic_ttl: float = 1800.0

    sweep_interval: float = 60.0
    ensemble_member_timeout: float = 30.0
    weights_path: Optional[Path] = None


# Environment configurations
_ENVIRONMENTS = {
    Environment.TEST: EnvironmentConfig(
        name="test",
        description="Test environment with small caches and short timeouts",
        ai_response_cache_size=50,
        embedding_cache_size=50,
        similarity_cache_size=100,
        semantic_cache_size=50,
        ensemble_member_timeout=5.0,
    ),
    Environment.PROD: EnvironmentConfig(
        name="prod",
        description="Production environment",
    ),
}

# Current active environment (default: test for safety)
_current_environment: Environment = Environment.TEST


def get_environment_config(env: Environment) -> EnvironmentConfig:
    """
    Get configuration for a specific environment.

    Args:
        env: Environment enum value

    Returns:
        EnvironmentConfig for the specified environment
    """
    return _ENVIRONMENTS[env]


def get_current_environment() -> EnvironmentConfig:
    """
    Get configuration for the currently active environment.

    The current environment can be set via:
    1. set_current_environment() function
    2. LFM_ENV environment variable

    Returns:
        EnvironmentConfig for current environment
    """
    env_var = os.environ.get("LFM_ENV", "").lower()
    if env_var == "prod":
        return _ENVIRONMENTS[Environment.PROD]
    elif env_var == "test":
        return _ENVIRONMENTS[Environment.TEST]

    return _ENVIRONMENTS[_current_environment]


def set_current_environment(env: Environment) -> None:
    """
    Set the current active environment.

    Args:
        env: Environment to activate
    """
    global _current_environment
    _current_environment = env


def get_all_environments() -> dict:
    """
    Get all available environment configurations.

    Returns:
        Dict mapping Environment enum to EnvironmentConfig
    """
    return _ENVIRONMENTS.copy()
