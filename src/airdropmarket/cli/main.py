"""
airdropmarket CLI
-----------------

Provides:
  - Whitelist tree building from an address list
  - Proof and multi-proof export for whitelisted addresses
  - Offline proof verification against an exported tree
  - A local HTTP devnet serving a fresh deployment
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

from airdropmarket.core.settings import get_settings
from airdropmarket.merkle.tree import WhitelistTree

logger = logging.getLogger("airdropmarket.cli")


def _load_tree(path: str) -> WhitelistTree:
    try:
        return WhitelistTree.from_file(path)
    except (OSError, ValueError, KeyError) as e:
        print(f"Cannot load whitelist from {path}: {e}", file=sys.stderr)
        sys.exit(1)


def cmd_merkle_build(args) -> None:
    """Build a tree from a JSON address list and write the export document."""
    tree = _load_tree(args.addresses)
    tree.save_to_file(args.out)
    print(f"Merkle root: {tree.root}")
    print(f"Leaves: {len(tree)}  Depth: {tree.depth}")
    print(f"Wrote {args.out}")


def cmd_merkle_proof(args) -> None:
    tree = _load_tree(args.tree)
    try:
        proof = tree.get_proof(args.address)
    except KeyError:
        print(f"Address not in whitelist: {args.address}", file=sys.stderr)
        sys.exit(1)
    print(json.dumps({"address": args.address.lower(), "root": tree.root, "proof": proof}, indent=2))


def cmd_merkle_multiproof(args) -> None:
    tree = _load_tree(args.tree)
    try:
        multi = tree.get_multi_proof(args.addresses)
    except KeyError as e:
        print(f"Address not in whitelist: {e}", file=sys.stderr)
        sys.exit(1)
    print(json.dumps({"root": tree.root, **multi.to_dict()}, indent=2))


def cmd_merkle_verify(args) -> None:
    """Verify a proof (given, or taken from the tree document) for an address."""
    tree = _load_tree(args.tree)
    if args.proof is not None:
        try:
            proof = json.loads(args.proof)
        except ValueError as e:
            print(f"Invalid JSON proof: {e}", file=sys.stderr)
            sys.exit(1)
    elif args.address in tree:
        proof = tree.get_proof(args.address)
    else:
        proof = []

    ok = tree.verify(args.address, proof)
    print(f"Valid proof: {ok}")
    if not ok:
        sys.exit(1)


def cmd_serve(args) -> None:
    """Deploy a fresh market and serve it over HTTP."""
    import uvicorn

    from airdropmarket.api.http import create_app
    from airdropmarket.market.deployment import deploy

    settings = get_settings()
    deployment = deploy(args.controller, settings=settings)
    if args.whitelist:
        tree = _load_tree(args.whitelist)
        deployment.chain.transact(
            deployment.controller, deployment.market.set_whitelist_root, tree.root
        )
        logger.info("Published whitelist root %s (%d addresses)", tree.root, len(tree))

    uvicorn.run(
        create_app(deployment),
        host=args.host or settings.http.host,
        port=args.port or settings.http.port,
        log_level=settings.runtime.log_level.lower(),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="airdropmarket", description="Whitelist discount market tooling")
    sub = parser.add_subparsers(dest="command", required=True)

    merkle = sub.add_parser("merkle", help="Whitelist tree tooling")
    merkle_sub = merkle.add_subparsers(dest="merkle_command", required=True)

    p = merkle_sub.add_parser("build", help="Build a tree from a JSON array of addresses")
    p.add_argument("addresses")
    p.add_argument("-o", "--out", default="merkle_tree_data.json")
    p.set_defaults(func=cmd_merkle_build)

    p = merkle_sub.add_parser("proof", help="Print the proof for one address")
    p.add_argument("tree")
    p.add_argument("address")
    p.set_defaults(func=cmd_merkle_proof)

    p = merkle_sub.add_parser("multiproof", help="Print one shared proof for several addresses")
    p.add_argument("tree")
    p.add_argument("addresses", nargs="+")
    p.set_defaults(func=cmd_merkle_multiproof)

    p = merkle_sub.add_parser("verify", help="Verify an address against a tree")
    p.add_argument("tree")
    p.add_argument("address")
    p.add_argument("--proof", default=None, help="JSON array of sibling hashes")
    p.set_defaults(func=cmd_merkle_verify)

    p = sub.add_parser("serve", help="Serve a fresh deployment over HTTP")
    p.add_argument("--controller", required=True)
    p.add_argument("--whitelist", default=None, help="Address list or exported tree to publish")
    p.add_argument("--host", default=None)
    p.add_argument("--port", type=int, default=None)
    p.set_defaults(func=cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    logging.basicConfig(
        level=get_settings().runtime.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args = build_parser().parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
