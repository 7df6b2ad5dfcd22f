"""Tests for CLI argument handling in main.py."""
from unittest.mock import patch

from click.testing import CliRunner

from steadysock.main import main
from steadysock.retry_policy import RetryLimits


class TestCLIArguments:
    """Tests for command-line argument validation."""

    def test_missing_target_exits_with_code_2(self):
        """Test that a missing TARGET gives a usage error."""
        runner = CliRunner()
        result = runner.invoke(main, [])
        assert result.exit_code == 2
        assert "target" in result.output.lower()

    def test_unsupported_scheme_exits_with_code_2(self):
        """Test that an http:// target is rejected."""
        runner = CliRunner()
        result = runner.invoke(main, ["http://example.com"])
        assert result.exit_code == 2
        assert "ws://" in result.output

    def test_every_transport_scheme_accepted(self):
        """Test that each scheme open_connection handles reaches the session."""
        runner = CliRunner()
        for target in ("ws://x", "wss://x", "tcp://127.0.0.1:1", "unix:///tmp/s"):
            with patch("steadysock.main._run", return_value=0) as mock_run:
                result = runner.invoke(main, [target])
            assert result.exit_code == 0
            assert mock_run.call_args.args[0] == target

    def test_negative_attempts_exits_with_code_2(self):
        """Test that --max-attempts rejects negative values."""
        runner = CliRunner()
        result = runner.invoke(main, ["ws://x", "--max-attempts", "-1"])
        assert result.exit_code == 2

    def test_help_exits_with_code_0(self):
        """Test that --help exits cleanly with code 0."""
        runner = CliRunner()
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "--retry-delay" in result.output
        assert "--no-retry" in result.output


class TestCLIDispatch:
    """Tests for how options reach the client session."""

    def test_defaults_passed_to_session(self):
        """Test default limits and retry flag are forwarded."""
        runner = CliRunner()
        with patch("steadysock.main._run", return_value=0) as mock_run:
            result = runner.invoke(main, ["ws://localhost:8765"])
        assert result.exit_code == 0
        mock_run.assert_called_once_with("ws://localhost:8765", RetryLimits(), (), True)

    def test_options_passed_to_session(self):
        """Test explicit options build the RetryLimits and message list."""
        runner = CliRunner()
        with patch("steadysock.main._run", return_value=1) as mock_run:
            result = runner.invoke(
                main,
                [
                    "tcp://127.0.0.1:9000",
                    "--send", "a",
                    "--send", "b",
                    "--no-retry",
                    "--max-attempts", "2",
                    "--max-lifetime-attempts", "5",
                    "--retry-delay", "0.5",
                ],
            )
        assert result.exit_code == 1
        mock_run.assert_called_once_with(
            "tcp://127.0.0.1:9000",
            RetryLimits(max_attempts=2, max_lifetime_attempts=5, delay=0.5),
            ("a", "b"),
            False,
        )

    def test_limits_from_environment(self):
        """Test retry limits can be set through environment variables."""
        runner = CliRunner()
        with patch("steadysock.main._run", return_value=0) as mock_run:
            result = runner.invoke(
                main,
                ["unix:///tmp/test.sock"],
                env={"STEADYSOCK_MAX_ATTEMPTS": "7", "STEADYSOCK_RETRY_DELAY": "1.5"},
            )
        assert result.exit_code == 0
        limits = mock_run.call_args.args[1]
        assert limits.max_attempts == 7
        assert limits.delay == 1.5
