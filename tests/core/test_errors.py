"""Tests for coolkit.core.errors."""

import pytest

from coolkit.core.errors import (
    ApiError,
    CommandError,
    ConfigError,
    CoolKitError,
    DeploymentCancelled,
    ErrorCategory,
    ErrorContext,
    InvalidConfigError,
    MissingConfigError,
    NetworkError,
    StepContractError,
    TeardownError,
    UnknownProviderError,
    categorize_error,
    is_retryable,
)


class TestErrorContext:
    def test_empty_context_serializes_empty(self):
        assert ErrorContext().to_dict() == {}

    def test_to_dict_flattens_metadata(self):
        ctx = ErrorContext(provider="aws", step="Launch EC2 instance", metadata={"region": "us-east-1"})
        assert ctx.to_dict() == {"provider": "aws", "step": "Launch EC2 instance", "region": "us-east-1"}


class TestCoolKitError:
    def test_defaults(self):
        err = CoolKitError("boom")
        assert err.message == "boom"
        assert err.category is ErrorCategory.INTERNAL
        assert err.retryable is False
        assert str(err) == "boom"

    def test_overrides(self):
        err = CoolKitError("boom", category=ErrorCategory.AUTH, retryable=True)
        assert err.category is ErrorCategory.AUTH
        assert err.retryable is True

    def test_cause_is_chained(self):
        cause = ValueError("inner")
        err = CoolKitError("outer", cause=cause)
        assert err.__cause__ is cause
        assert err.to_dict()["cause"] == "inner"

    def test_with_context_is_fluent(self):
        err = CoolKitError("boom").with_context(provider="azure", attempt=3)
        assert err.context.provider == "azure"
        assert err.context.metadata == {"attempt": 3}
        assert err.to_dict()["context"] == {"provider": "azure", "attempt": 3}

    def test_repr_names_category(self):
        assert repr(ConfigError("bad")) == "ConfigError('bad', category=CONFIG)"


class TestSubclasses:
    def test_network_errors_are_retryable(self):
        assert NetworkError("x").retryable is True
        assert NetworkError("x").category is ErrorCategory.NETWORK

    def test_command_error_message_includes_stderr(self):
        err = CommandError(["hcloud", "server", "create"], 1, "hcloud: invalid token (unauthorized)\n")
        assert err.message == "hcloud exited with status 1: hcloud: invalid token (unauthorized)"
        assert err.stderr.startswith("hcloud:")
        assert err.category is ErrorCategory.PROVIDER

    def test_command_error_without_returncode(self):
        err = CommandError(["ssh", "host"], None)
        assert err.message == "ssh did not complete"

    def test_api_error_status_helpers(self):
        assert ApiError(404).is_not_found
        assert ApiError(409, "exists").is_conflict
        assert ApiError(500, '{"message": "oops"}').message == 'API error (status 500): {"message": "oops"}'

    def test_config_errors(self):
        assert MissingConfigError("aws.region").message == "Missing required configuration: aws.region"
        err = InvalidConfigError("docker.app_port", "abc")
        assert err.key == "docker.app_port"
        assert "'abc'" in err.message

    def test_unknown_provider_lists_available(self):
        err = UnknownProviderError("linode", ["aws", "gcp"])
        assert err.message == "Unknown provider: 'linode'. Available: aws, gcp"
        assert err.category is ErrorCategory.CONFIG

    def test_step_contract_error_messages(self):
        assert "declared 'Setup SSH key'" in StepContractError(1, "Setup SSH key", "Create server").message
        assert "undeclared step #4" in StepContractError(3, None, "Extra").message
        assert "without running declared step #3 'Install'" in StepContractError(2, "Install", None).message

    def test_categories(self):
        assert DeploymentCancelled("stop").category is ErrorCategory.CANCELLED
        assert TeardownError("left over").retryable is True


class TestHelpers:
    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (NetworkError("reset"), True),
            (ApiError(503), True),
            (ApiError(429), True),
            (ApiError(404), False),
            (ConfigError("bad"), False),
            (ConnectionError("refused"), True),
            (TimeoutError(), True),
            (ValueError("x"), False),
        ],
    )
    def test_is_retryable(self, error, expected):
        assert is_retryable(error) is expected

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (ConfigError("bad"), ErrorCategory.CONFIG),
            (ConnectionError(), ErrorCategory.NETWORK),
            (PermissionError(), ErrorCategory.AUTH),
            (ValueError(), ErrorCategory.VALIDATION),
            (KeyError("k"), ErrorCategory.UNKNOWN),
        ],
    )
    def test_categorize_error(self, error, expected):
        assert categorize_error(error) is expected
