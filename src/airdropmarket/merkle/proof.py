"""
Merkle Proof Verification

Stateless inclusion checks for whitelist roots.

Key features:
- SHA-256 leaves over raw address bytes
- Commutative (sorted) pair hashing, so proofs carry no directions
- Single-proof fold and shared-pool multi-proof reconstruction

Hashes are 0x-prefixed lowercase hex strings of 32 bytes.
"""

from __future__ import annotations

import hashlib
from typing import List, Sequence

from airdropmarket.protocol.errors import InvalidHashError
from airdropmarket.protocol.models import normalize_address


ZERO_HASH = "0x" + "00" * 32

HASH_SIZE = 32


# ===========================================================================
# Hash Functions
# ===========================================================================


def _to_bytes(value: str) -> bytes:
    if not isinstance(value, str):
        raise InvalidHashError(f"Expected hex string, got {type(value).__name__}")
    try:
        raw = bytes.fromhex(value[2:] if value.startswith(("0x", "0X")) else value)
    except ValueError as exc:
        raise InvalidHashError(f"Malformed hash {value!r}: {exc}") from exc
    if len(raw) != HASH_SIZE:
        raise InvalidHashError(f"Expected {HASH_SIZE}-byte hash, got {len(raw)} bytes")
    return raw


def _to_hex(raw: bytes) -> str:
    return "0x" + raw.hex()


def normalize_hash(value: str) -> str:
    """
    Validate a hash and return its canonical 0x-prefixed lowercase form.

    Raises:
        InvalidHashError: If the value is not 32 bytes of hex
    """
    return _to_hex(_to_bytes(value))


def hash_leaf(principal: str) -> str:
    """
    Compute the whitelist leaf for a principal.

    The leaf is SHA-256 over the 20 raw address bytes. It attests
    membership only; it carries no asset or nonce.
    """
    address = normalize_address(principal)
    return _to_hex(hashlib.sha256(bytes.fromhex(address[2:])).digest())


def hash_pair(a: str, b: str) -> str:
    """
    Hash two nodes in sorted order.

    The smaller operand goes first, so hash_pair(a, b) == hash_pair(b, a).
    """
    left, right = _to_bytes(a), _to_bytes(b)
    if right < left:
        left, right = right, left
    return _to_hex(hashlib.sha256(left + right).digest())


# ===========================================================================
# Single Proofs
# ===========================================================================


def process_proof(proof: Sequence[str], leaf: str) -> str:
    """
    Fold a leaf with its sibling hashes.

    Returns the reconstructed root. An empty proof returns the leaf itself
    (single-leaf tree).

    Raises:
        InvalidHashError: If any hash is malformed
    """
    computed = normalize_hash(leaf)
    for sibling in proof:
        computed = hash_pair(computed, sibling)
    return computed


def verify(proof: Sequence[str], root: str, leaf: str) -> bool:
    """
    Check that ``leaf`` is included under ``root``.

    Never raises: malformed input verifies as False.
    """
    try:
        return process_proof(proof, leaf) == normalize_hash(root)
    except (InvalidHashError, ValueError, TypeError):
        return False


# ===========================================================================
# Multi-Proofs
# ===========================================================================


def process_multi_proof(
    proof: Sequence[str],
    proof_flags: Sequence[bool],
    leaves: Sequence[str],
) -> str:
    """
    Reconstruct a root from several leaves sharing one proof pool.

    Each combining step takes its first operand from the queue of leaves
    and computed hashes. ``proof_flags[i]`` selects where the second
    operand comes from: True takes it from the same queue, False from the
    proof pool. Leaves must be given in tree order.

    Raises:
        ValueError: If the pools do not describe a complete reconstruction
    """
    leaves_len = len(leaves)
    proof_len = len(proof)
    total_hashes = len(proof_flags)

    if leaves_len + proof_len - 1 != total_hashes:
        raise ValueError("Invalid multi-proof: leaves + proof - 1 != flags")

    queue: List[str] = [normalize_hash(leaf) for leaf in leaves]
    hashes: List[str] = []
    leaf_pos = 0
    hash_pos = 0
    proof_pos = 0

    def _next_from_queue() -> str:
        nonlocal leaf_pos, hash_pos
        if leaf_pos < leaves_len:
            leaf_pos += 1
            return queue[leaf_pos - 1]
        if hash_pos < len(hashes):
            hash_pos += 1
            return hashes[hash_pos - 1]
        raise ValueError("Invalid multi-proof: operand queue exhausted")

    for use_queue in proof_flags:
        a = _next_from_queue()
        if use_queue:
            b = _next_from_queue()
        else:
            if proof_pos >= proof_len:
                raise ValueError("Invalid multi-proof: proof pool exhausted")
            b = proof[proof_pos]
            proof_pos += 1
        hashes.append(hash_pair(a, b))

    if total_hashes > 0:
        if proof_pos != proof_len:
            raise ValueError("Invalid multi-proof: unused proof elements")
        return hashes[-1]
    if leaves_len > 0:
        return queue[0]
    return normalize_hash(proof[0])


def multi_proof_verify(
    proof: Sequence[str],
    proof_flags: Sequence[bool],
    root: str,
    leaves: Sequence[str],
) -> bool:
    """
    Check that every leaf in ``leaves`` is included under ``root``.

    The length relationship is checked before any hashing. Never raises.
    """
    if len(leaves) + len(proof) - 1 != len(proof_flags):
        return False

    try:
        return process_multi_proof(proof, proof_flags, leaves) == normalize_hash(root)
    except (InvalidHashError, ValueError, TypeError):
        return False
