"""Unit tests for the detect and url CLI commands."""

import json
from unittest.mock import AsyncMock, patch

from signlink.cli import cli
from signlink.cli.output import RESPONSE_VERSION
from signlink.core.detection import ConnectionStatus

RUNNING = ConnectionStatus(is_running=True, port=64443, transport_supported=True)
NOT_RUNNING = ConnectionStatus(is_running=False, port=None, transport_supported=True)


def _envelope(result):
    return json.loads(result.stdout)


class TestUrlCommand:
    """Tests for `signlink url`."""

    def test_insecure_default(self, cli_runner):
        result = cli_runner.invoke(cli, ["url"])

        assert result.exit_code == 0
        payload = _envelope(result)
        assert payload["success"] is True
        assert payload["data"]["url"] == "ws://127.0.0.1:64646/service/cryptapi"
        assert payload["meta"] == {"version": RESPONSE_VERSION}

    def test_secure(self, cli_runner):
        result = cli_runner.invoke(cli, ["url", "--secure"])

        assert result.exit_code == 0
        assert _envelope(result)["data"]["url"] == "wss://127.0.0.1:64443/service/cryptapi"


class TestDetectCommand:
    """Tests for `signlink detect`."""

    @patch("signlink.cli.commands.detect.ConnectionProbe.detect", new_callable=AsyncMock)
    def test_running_agent_exits_zero(self, mock_detect, cli_runner):
        mock_detect.return_value = RUNNING

        result = cli_runner.invoke(cli, ["detect", "--secure"])

        assert result.exit_code == 0
        payload = _envelope(result)
        assert payload["success"] is True
        assert payload["error"] is None
        assert payload["data"]["is_running"] is True
        assert payload["data"]["port"] == 64443
        assert payload["data"]["url"] == "wss://127.0.0.1:64443/service/cryptapi"
        assert "download_url" not in payload["data"]

    @patch("signlink.cli.commands.detect.ConnectionProbe.detect", new_callable=AsyncMock)
    def test_missing_agent_exits_one(self, mock_detect, cli_runner):
        mock_detect.return_value = NOT_RUNNING

        result = cli_runner.invoke(cli, ["detect", "--insecure"])

        assert result.exit_code == 1
        payload = _envelope(result)
        assert payload["data"]["is_running"] is False
        assert payload["data"]["port"] is None
        assert payload["data"]["url"] == "ws://127.0.0.1:64646/service/cryptapi"
        assert payload["data"]["download_url"].startswith("https://")

    @patch("signlink.cli.commands.detect.ConnectionProbe.detect", new_callable=AsyncMock)
    def test_secure_from_environment(self, mock_detect, cli_runner, monkeypatch):
        mock_detect.return_value = RUNNING
        monkeypatch.setenv("SIGNLINK_PROBE_SECURE", "true")

        result = cli_runner.invoke(cli, ["detect"])

        assert _envelope(result)["data"]["url"].startswith("wss://")

    @patch("signlink.cli.commands.detect.ConnectionProbe")
    def test_timeout_option_reaches_probe(self, mock_probe_cls, cli_runner):
        probe = mock_probe_cls.return_value
        probe.detect = AsyncMock(return_value=NOT_RUNNING)
        probe.endpoint.url = "ws://127.0.0.1:64646/service/cryptapi"

        cli_runner.invoke(cli, ["detect", "--timeout-ms", "250"])

        assert mock_probe_cls.call_args.kwargs["timeout_ms"] == 250

    @patch("signlink.cli.commands.detect.ConnectionProbe")
    def test_timeout_from_config_file(self, mock_probe_cls, cli_runner, tmp_path):
        probe = mock_probe_cls.return_value
        probe.detect = AsyncMock(return_value=NOT_RUNNING)
        probe.endpoint.url = "ws://127.0.0.1:64646/service/cryptapi"
        config_path = tmp_path / "agent.toml"
        config_path.write_text("[probe]\ntimeout_ms = 900\n")

        cli_runner.invoke(cli, ["detect", "--config", str(config_path)])

        assert mock_probe_cls.call_args.kwargs["timeout_ms"] == 900

    def test_invalid_timeout_is_validation_error(self, cli_runner):
        result = cli_runner.invoke(cli, ["detect", "--timeout-ms", "0"])

        assert result.exit_code == 2
        payload = _envelope(result)
        assert payload["success"] is False
        assert payload["data"]["error_code"] == "VALIDATION_ERROR"
        assert "Invalid probe timeout" in payload["error"]

    def test_bad_config_value_falls_back_to_default(self, cli_runner, tmp_path):
        config_path = tmp_path / "agent.toml"
        config_path.write_text('[probe]\ntimeout_ms = "fast"\n')

        with patch("signlink.cli.commands.detect.ConnectionProbe") as mock_probe_cls:
            probe = mock_probe_cls.return_value
            probe.detect = AsyncMock(return_value=NOT_RUNNING)
            probe.endpoint.url = "ws://127.0.0.1:64646/service/cryptapi"
            result = cli_runner.invoke(cli, ["detect", "--config", str(config_path)])

        assert result.exit_code == 1
        assert mock_probe_cls.call_args.kwargs["timeout_ms"] == 2000

    @patch("signlink.cli.commands.detect.ConnectionProbe")
    def test_quoted_config_value_is_used(self, mock_probe_cls, cli_runner, tmp_path):
        probe = mock_probe_cls.return_value
        probe.detect = AsyncMock(return_value=NOT_RUNNING)
        probe.endpoint.url = "ws://127.0.0.1:64646/service/cryptapi"
        config_path = tmp_path / "agent.toml"
        config_path.write_text('[probe]\ntimeout_ms = "2000"\n')

        result = cli_runner.invoke(cli, ["detect", "--config", str(config_path)])

        assert result.exit_code == 1
        assert mock_probe_cls.call_args.kwargs["timeout_ms"] == 2000
