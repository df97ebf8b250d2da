"""Tests for retry policy and stage configuration."""

import pytest

from sqlstage.config import DEFAULT_UPLOAD_PATH, RetryPolicy, StageConfig
from sqlstage.exceptions import ImproperConfigurationError


def test_retry_policy_defaults() -> None:
    policy = RetryPolicy()

    assert policy.max_attempts == 5
    assert policy.max_elapsed == 300.0
    assert [policy.delay_for(attempt) for attempt in (1, 2, 3)] == pytest.approx([0.1, 0.2, 0.3])


def test_retry_policy_exhaustion() -> None:
    policy = RetryPolicy(max_attempts=3, max_elapsed=10)

    assert not policy.is_exhausted(2, 9.9)
    assert policy.is_exhausted(3, 0)
    assert policy.is_exhausted(1, 10)


@pytest.mark.parametrize(
    "kwargs",
    [{"max_attempts": 0}, {"max_elapsed": 0}, {"backoff_step": -0.1}],
)
def test_retry_policy_rejects_invalid_values(kwargs) -> None:
    with pytest.raises(ImproperConfigurationError):
        RetryPolicy(**kwargs)


def test_retry_policy_from_features() -> None:
    policy = RetryPolicy.from_features({"max_attempts": "3", "backoff_step": 0.5})

    assert policy == RetryPolicy(max_attempts=3, max_elapsed=300.0, backoff_step=0.5)


def test_stage_config_defaults() -> None:
    config = StageConfig()

    assert config.presigned_url_disabled is False
    assert config.upload_path == DEFAULT_UPLOAD_PATH
    assert config.default_stage == "~"
    assert config.null_literal == "\\N"
    assert config.retry == RetryPolicy()


def test_stage_config_from_features_nested_retry() -> None:
    config = StageConfig.from_features(
        {"presigned_url_disabled": "true", "upload_path": "v2/upload", "retry": {"max_attempts": 2}}
    )

    assert config.presigned_url_disabled is True
    assert config.upload_path == "/v2/upload"
    assert config.retry.max_attempts == 2


def test_stage_config_from_features_top_level_retry() -> None:
    config = StageConfig.from_features({"presigned_url_disabled": "off", "max_elapsed": 30})

    assert config.presigned_url_disabled is False
    assert config.retry.max_elapsed == 30.0


def test_stage_config_rejects_non_positive_chunk_size() -> None:
    with pytest.raises(ImproperConfigurationError):
        StageConfig(chunk_size=0)


def test_stage_config_copy_leaves_original_untouched() -> None:
    config = StageConfig()

    changed = config.copy(default_stage="my_stage")

    assert changed.default_stage == "my_stage"
    assert config.default_stage == "~"
