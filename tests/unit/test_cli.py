"""Unit tests for CLI argument parsing."""
from __future__ import annotations

import pytest

from blocksnap.cli import build_parser, parse_markets


class TestBuildParser:
    def test_locate_command(self) -> None:
        parser = build_parser()
        args = parser.parse_args(
            ["locate", "--chain", "1", "--chain", "8453", "--timestamp", "1700000000"]
        )
        assert args.command == "locate"
        assert args.chain == [1, 8453]
        assert args.timestamp == 1_700_000_000
        assert args.period is None

    def test_locate_defaults_to_all_chains(self) -> None:
        parser = build_parser()
        args = parser.parse_args(["locate", "--period", "week"])
        assert args.chain is None
        assert args.period == "week"

    def test_timestamp_and_period_are_exclusive(self) -> None:
        parser = build_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(["locate", "--timestamp", "1", "--period", "day"])

    def test_target_required(self) -> None:
        parser = build_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(["locate"])

    def test_unknown_period_rejected(self) -> None:
        parser = build_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(["locate", "--period", "year"])

    def test_positions_command(self) -> None:
        parser = build_parser()
        args = parser.parse_args(
            ["positions", "--market", "8453:0xabc", "--user", "0xUSER", "--period", "day"]
        )
        assert args.command == "positions"
        assert args.market == ["8453:0xabc"]
        assert args.user == "0xUSER"

    def test_serve_command(self) -> None:
        parser = build_parser()
        args = parser.parse_args(["serve", "--port", "9001"])
        assert args.command == "serve"
        assert args.port == 9001
        assert args.host is None

    def test_config_flag(self) -> None:
        parser = build_parser()
        args = parser.parse_args(["--config", "/tmp/c.yaml", "serve"])
        assert args.config == "/tmp/c.yaml"

    def test_log_level_flag(self) -> None:
        parser = build_parser()
        args = parser.parse_args(["--log-level", "DEBUG", "serve"])
        assert args.log_level == "DEBUG"

    def test_no_command(self) -> None:
        parser = build_parser()
        args = parser.parse_args([])
        assert args.command is None


class TestParseMarkets:
    def test_chain_prefix(self) -> None:
        assert parse_markets(["8453:0xabc", "1:0xdef"], None) == {
            8453: ["0xabc"],
            1: ["0xdef"],
        }

    def test_default_chain(self) -> None:
        assert parse_markets(["0xabc", "0xdef"], 1) == {1: ["0xabc", "0xdef"]}

    def test_missing_chain_raises(self) -> None:
        with pytest.raises(ValueError, match="has no chain"):
            parse_markets(["0xabc"], None)
