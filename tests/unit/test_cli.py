"""
Unit tests for CLI argument parsing, validation helpers and error handling.
"""

from unittest.mock import patch

import pytest
from eth_utils import to_checksum_address

from zkdao_toolkit.cli import build_parser, main
from zkdao_toolkit.commands.helpers import handle_command_error
from zkdao_toolkit.commands.validation import (
    validate_amount,
    validate_choice,
    validate_eth_address,
)
from zkdao_toolkit.governance.models import VoteType
from zkdao_toolkit.shared.exceptions import ServiceRejectedException


class TestValidation:
    @pytest.mark.parametrize(
        "value,expected",
        [("0", VoteType.AGAINST), ("for", VoteType.FOR), ("ABSTAIN", VoteType.ABSTAIN)],
    )
    def test_choice(self, value, expected):
        assert validate_choice(value) == expected

    @pytest.mark.parametrize("value", ["3", "yes", ""])
    def test_invalid_choice(self, value):
        with pytest.raises(ValueError):
            validate_choice(value)

    def test_address_is_checksummed(self):
        address = "0x" + "ab" * 20
        assert validate_eth_address(address) == to_checksum_address(address)

    def test_invalid_address(self):
        with pytest.raises(ValueError, match="voter"):
            validate_eth_address("0x123", "voter")

    def test_amount(self):
        assert validate_amount(5) == 5
        with pytest.raises(ValueError):
            validate_amount(0)


class TestParser:
    def test_prove_vote_arguments(self):
        args = build_parser().parse_args(
            ["prove-vote", "--space", "my-dao", "--proposal-id", "3", "--choice", "for"]
        )
        assert args.space == "my-dao"
        assert args.proposal_id == "3"
        assert args.func.__name__ == "cmd_prove_vote"

    def test_repeatable_descriptor(self):
        args = build_parser().parse_args(
            ["generate-snapshot", "--descriptor", "a", "--descriptor", "b"]
        )
        assert args.descriptor == ["a", "b"]

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestErrorHandling:
    def test_toolkit_errors_exit_with_kind(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            handle_command_error(ServiceRejectedException(503))
        assert exc_info.value.code == 1
        assert "service_rejected error" in capsys.readouterr().out

    def test_prove_vote_without_key(self, monkeypatch, capsys):
        monkeypatch.delenv("ZKDAO_PRIVATE_KEY", raising=False)
        with pytest.raises(SystemExit):
            main(["prove-vote", "--space", "s", "--proposal-id", "1", "--choice", "for"])
        assert "ZKDAO_PRIVATE_KEY" in capsys.readouterr().out

    def test_chains_command(self, capsys):
        with patch("zkdao_toolkit.utils.formatters.console.print") as printer:
            main(["chains"])
        printer.assert_called_once()
