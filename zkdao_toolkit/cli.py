#!/usr/bin/env python3
"""
Unified CLI for the zkDAO toolkit.

Examples:
  - Eligibility
    zkdao eligibility-proof --space my-dao --proposal-id 1 --voter 0x...
    zkdao generate-snapshot --descriptor my-dao/proposals/1 --descriptor my-dao/proposals/2

  - Vote proofs (key read from ZKDAO_PRIVATE_KEY)
    zkdao prove-vote --space my-dao --proposal-id 1 --choice for

  - Cross-chain
    zkdao ccip-fee --chain ethereumSepolia --destination avalancheFuji --receiver 0x... --amount 1000

  - Configuration
    zkdao chains
"""

import argparse
import asyncio
import os
from typing import List, Optional

from zkdao_toolkit.commands.helpers import handle_command_error
from zkdao_toolkit.commands.validation import (
    validate_amount,
    validate_chain,
    validate_choice,
    validate_eth_address,
)
from zkdao_toolkit.crosschain.router import Web3CcipRouter
from zkdao_toolkit.crosschain.types import EVM2AnyMessage
from zkdao_toolkit.proofs.eligibility_client import MerkleEligibilityClient
from zkdao_toolkit.proofs.manager import ZKVoteProofs
from zkdao_toolkit.shared.chains import get_chain_registry
from zkdao_toolkit.shared.constants import ServiceConstants
from zkdao_toolkit.shared.services.web3_service import Web3Service
from zkdao_toolkit.utils.formatters import (
    console,
    create_chains_table,
    format_address,
    generate_timestamped_filename,
    save_json_output,
)


def cmd_eligibility_proof(args: argparse.Namespace) -> None:
    voter = validate_eth_address(args.voter, "voter")

    async def run():
        async with MerkleEligibilityClient(base_url=args.api_url) as client:
            return await client.get_proof(args.space, args.proposal_id, voter)

    proof = asyncio.run(run())
    reaches_root = proof.path_reaches_root()

    console.print(f"Voter {format_address(voter)} is eligible")
    console.print(f"  weight: {proof.weight}")
    console.print(f"  leaf index: {proof.index}")
    console.print(f"  snapshot root: {hex(proof.snapshot_root)}")
    console.print(
        "  path check: "
        + ("[green]reaches root[/green]" if reaches_root else "[red]does not reach root[/red]")
    )

    if args.output:
        # The secret stays out of files
        save_json_output(
            {
                "space": args.space,
                "proposal_id": args.proposal_id,
                "voter": voter,
                "weight": proof.weight,
                "index": proof.index,
                "leaf": hex(proof.leaf),
                "snapshot_root": hex(proof.snapshot_root),
                "path": [hex(p) for p in proof.path],
                "path_reaches_root": reaches_root,
            },
            args.output,
        )


def cmd_generate_snapshot(args: argparse.Namespace) -> None:
    async def run():
        async with MerkleEligibilityClient(base_url=args.api_url) as client:
            return await client.generate_snapshot(args.descriptor)

    identifiers = asyncio.run(run())
    for descriptor, identifier in zip(args.descriptor, identifiers):
        console.print(f"- {descriptor} → {identifier}")

    if args.json:
        filename = args.output or generate_timestamped_filename("snapshot")
        save_json_output(
            {"snapshots": dict(zip(args.descriptor, identifiers))}, filename
        )


def cmd_prove_vote(args: argparse.Namespace) -> None:
    private_key = os.getenv("ZKDAO_PRIVATE_KEY")
    if not private_key:
        raise ValueError("ZKDAO_PRIVATE_KEY is not set")
    choice = validate_choice(args.choice)

    async def run():
        client = MerkleEligibilityClient(base_url=args.api_url)
        try:
            proofs = ZKVoteProofs(eligibility_client=client)
            return await proofs.get_vote_proof(
                args.space, args.proposal_id, private_key, int(choice), args.message
            )
        finally:
            await client.aclose()

    result = asyncio.run(run())
    proof = result.unwrap()

    filename = args.output or f"vote_proof_{args.proposal_id}.json"
    save_json_output(
        {
            "space": args.space,
            "proposal_id": args.proposal_id,
            "choice": choice.name.lower(),
            **proof.to_dict(),
        },
        filename,
        print_path=False,
    )
    console.print(
        f"Vote proof generated (nullifier {format_address(proof.nullifier)}). "
        f"Saved → output/{filename}"
    )


def cmd_ccip_fee(args: argparse.Namespace) -> None:
    chain = validate_chain(args.chain)
    registry = get_chain_registry()
    receiver = validate_eth_address(args.receiver, "receiver")
    token = validate_eth_address(
        args.token or chain.require("ccip_bnm_token"), "token"
    )
    amount = validate_amount(args.amount)

    selector = registry.destination_selector(chain.name, args.destination)
    router = Web3CcipRouter(
        Web3Service.get_instance(chain.name), chain.require("ccip_router")
    )
    if not router.is_chain_supported(selector):
        raise ValueError(f"Router on {chain.name} does not support {args.destination}")

    message = EVM2AnyMessage.token_transfer(
        receiver, token, amount, chain.require("link_token")
    )
    fee = router.get_fee(selector, message)

    console.print(
        f"CCIP fee {chain.name} → {args.destination}: {fee / 1e18:.6f} LINK ({fee} wei)"
    )
    if args.json:
        save_json_output(
            {
                "source": chain.name,
                "destination": args.destination,
                "destination_selector": str(selector),
                "receiver": receiver,
                "token": token,
                "amount": str(amount),
                "fee": str(fee),
            },
            args.output or generate_timestamped_filename("ccip_fee"),
        )


def cmd_chains(args: argparse.Namespace) -> None:
    registry = get_chain_registry()
    table = create_chains_table()
    for name in registry.names():
        chain = registry.get(name)
        table.add_row(
            chain.name,
            str(chain.chain_id),
            str(chain.chain_selector or "-"),
            format_address(chain.link_token or ""),
            format_address(chain.ccip_router or ""),
            str(chain.functions_subscription_id or "-"),
            ", ".join(chain.destination_chains) or "-",
        )
    console.print(table)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zkdao", description="zkDAO anonymous voting toolkit"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # eligibility-proof
    p_ep = sub.add_parser(
        "eligibility-proof", help="Fetch a voter's Merkle eligibility proof"
    )
    p_ep.add_argument("--space", type=str, required=True)
    p_ep.add_argument("--proposal-id", type=str, required=True)
    p_ep.add_argument("--voter", type=str, required=True)
    p_ep.add_argument("--api-url", type=str, default=ServiceConstants.MERKLE_API_URL)
    p_ep.add_argument("--output", type=str, help="Output filename")
    p_ep.set_defaults(func=cmd_eligibility_proof)

    # generate-snapshot
    p_gs = sub.add_parser(
        "generate-snapshot", help="Build snapshot trees for proposals"
    )
    p_gs.add_argument(
        "--descriptor",
        type=str,
        action="append",
        required=True,
        help="Proposal descriptor (repeatable)",
    )
    p_gs.add_argument("--api-url", type=str, default=ServiceConstants.MERKLE_API_URL)
    p_gs.add_argument("--json", action="store_true", help="Output JSON")
    p_gs.add_argument("--output", type=str, help="Output filename")
    p_gs.set_defaults(func=cmd_generate_snapshot)

    # prove-vote
    p_pv = sub.add_parser("prove-vote", help="Generate an anonymous vote proof")
    p_pv.add_argument("--space", type=str, required=True)
    p_pv.add_argument("--proposal-id", type=str, required=True)
    p_pv.add_argument("--choice", type=str, required=True, help="against/for/abstain")
    p_pv.add_argument("--message", type=str, help="Message to sign")
    p_pv.add_argument("--api-url", type=str, default=ServiceConstants.MERKLE_API_URL)
    p_pv.add_argument("--output", type=str, help="Output filename")
    p_pv.set_defaults(func=cmd_prove_vote)

    # ccip-fee
    p_cf = sub.add_parser("ccip-fee", help="Quote a CCIP token transfer fee")
    p_cf.add_argument("--chain", type=str, required=True)
    p_cf.add_argument("--destination", type=str, required=True)
    p_cf.add_argument("--receiver", type=str, required=True)
    p_cf.add_argument("--token", type=str, help="Defaults to CCIP-BnM")
    p_cf.add_argument("--amount", type=int, required=True)
    p_cf.add_argument("--json", action="store_true", help="Output JSON")
    p_cf.add_argument("--output", type=str, help="Output filename")
    p_cf.set_defaults(func=cmd_ccip_fee)

    # chains
    p_ch = sub.add_parser("chains", help="Show the chain configuration")
    p_ch.set_defaults(func=cmd_chains)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        args.func(args)
    except Exception as e:
        handle_command_error(e)


if __name__ == "__main__":
    main()
