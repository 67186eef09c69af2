"""
Whitelist Merkle primitives.

- proof: stateless single-proof and multi-proof verification
- tree: off-chain whitelist tree builder with proof generation
"""

from airdropmarket.merkle.proof import (
    ZERO_HASH,
    hash_leaf,
    hash_pair,
    multi_proof_verify,
    normalize_hash,
    process_multi_proof,
    process_proof,
    verify,
)
from airdropmarket.merkle.tree import MultiProof, WhitelistTree

__all__ = [
    "ZERO_HASH",
    "hash_leaf",
    "hash_pair",
    "normalize_hash",
    "process_proof",
    "verify",
    "process_multi_proof",
    "multi_proof_verify",
    "MultiProof",
    "WhitelistTree",
]
