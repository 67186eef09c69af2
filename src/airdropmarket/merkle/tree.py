"""
Whitelist Tree Builder

Off-chain construction of the whitelist committed by the market controller.

Key features:
- One leaf per eligible address (see proof.hash_leaf)
- Sorted-pair hashing, so proofs verify with merkle.proof.verify
- Odd trailing nodes are paired with themselves. Builders that promote
  the odd node unchanged (the merkletreejs default) produce different
  roots for the same address list
- Single proofs, multi-proofs and JSON export/import
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence

from airdropmarket.protocol.models import normalize_address

from .proof import hash_leaf, hash_pair, multi_proof_verify, verify


# ===========================================================================
# Multi-Proof
# ===========================================================================


@dataclass
class MultiProof:
    """
    Shared-pool proof for several leaves.

    Attributes:
        leaves: Leaf hashes in tree order
        proof: Sibling hashes in consumption order
        proof_flags: Per combining step, True if the second operand comes
            from the leaf/hash queue, False if it comes from ``proof``
    """
    leaves: List[str]
    proof: List[str]
    proof_flags: List[bool] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "leaves": list(self.leaves),
            "proof": list(self.proof),
            "proofFlags": list(self.proof_flags),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MultiProof":
        return cls(
            leaves=list(data["leaves"]),
            proof=list(data["proof"]),
            proof_flags=[bool(f) for f in data["proofFlags"]],
        )


# ===========================================================================
# Whitelist Tree
# ===========================================================================


class WhitelistTree:
    """
    Merkle tree over a list of eligible addresses.

    Leaves keep the order of the input list; the tree is built eagerly.
    """

    def __init__(self, addresses: Iterable[str]):
        normalized = [normalize_address(a) for a in addresses]
        if not normalized:
            raise ValueError("Cannot build tree with no addresses")

        self._index: Dict[str, int] = {}
        for i, address in enumerate(normalized):
            if address in self._index:
                raise ValueError(f"Address {address} already in whitelist")
            self._index[address] = i

        self._addresses = normalized
        self._levels = self._build_levels([hash_leaf(a) for a in normalized])

    @staticmethod
    def _build_levels(leaves: List[str]) -> List[List[str]]:
        levels = [leaves]
        current = leaves
        while len(current) > 1:
            next_level: List[str] = []
            for i in range(0, len(current), 2):
                left = current[i]
                # If odd number of nodes, pair the last one with itself
                right = current[i + 1] if i + 1 < len(current) else left
                next_level.append(hash_pair(left, right))
            levels.append(next_level)
            current = next_level
        return levels

    @property
    def root(self) -> str:
        return self._levels[-1][0]

    @property
    def addresses(self) -> List[str]:
        return list(self._addresses)

    @property
    def leaves(self) -> List[str]:
        return list(self._levels[0])

    @property
    def depth(self) -> int:
        return len(self._levels) - 1

    def __contains__(self, address: str) -> bool:
        return normalize_address(address) in self._index

    def __len__(self) -> int:
        return len(self._addresses)

    def _index_of(self, address: str) -> int:
        normalized = normalize_address(address)
        if normalized not in self._index:
            raise KeyError(f"Address {normalized} is not in the whitelist")
        return self._index[normalized]

    def get_proof(self, address: str) -> List[str]:
        """
        Get the sibling path for an address, leaf to root.

        Raises:
            KeyError: If the address is not whitelisted
        """
        index = self._index_of(address)
        proof: List[str] = []
        for level in self._levels[:-1]:
            sibling = index ^ 1
            if sibling >= len(level):
                sibling = index
            proof.append(level[sibling])
            index //= 2
        return proof

    def get_all_proofs(self) -> Dict[str, List[str]]:
        return {address: self.get_proof(address) for address in self._addresses}

    def get_multi_proof(self, addresses: Sequence[str]) -> MultiProof:
        """
        Build one shared proof for several addresses.

        Siblings that are themselves being proven, or are computed from
        proven nodes, are taken from the queue instead of the proof pool.

        Raises:
            KeyError: If any address is not whitelisted
            ValueError: If no address is given
        """
        if not addresses:
            raise ValueError("Cannot build a multi-proof for no addresses")

        known = sorted({self._index_of(a) for a in addresses})
        leaves = [self._levels[0][i] for i in known]
        proof: List[str] = []
        flags: List[bool] = []

        for level in self._levels[:-1]:
            parents: List[int] = []
            pos = 0
            while pos < len(known):
                index = known[pos]
                sibling = index ^ 1
                if pos + 1 < len(known) and known[pos + 1] == sibling:
                    flags.append(True)
                    pos += 2
                else:
                    if sibling >= len(level):
                        sibling = index
                    proof.append(level[sibling])
                    flags.append(False)
                    pos += 1
                parents.append(index // 2)
            known = parents

        return MultiProof(leaves=leaves, proof=proof, proof_flags=flags)

    def verify(self, address: str, proof: Sequence[str]) -> bool:
        return verify(proof, self.root, hash_leaf(address))

    def verify_multi(self, multi_proof: MultiProof) -> bool:
        return multi_proof_verify(
            multi_proof.proof,
            multi_proof.proof_flags,
            self.root,
            multi_proof.leaves,
        )

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export(self) -> Dict[str, Any]:
        """Root, leaves, every proof and the address list as one document."""
        return {
            "root": self.root,
            "leaves": self.leaves,
            "proofs": self.get_all_proofs(),
            "addresses": self.addresses,
        }

    @classmethod
    def from_export(cls, data: Dict[str, Any]) -> "WhitelistTree":
        """
        Rebuild a tree from an exported document.

        Raises:
            ValueError: If the rebuilt root differs from the recorded one
        """
        tree = cls(data["addresses"])
        recorded = data.get("root")
        if recorded is not None and recorded.lower() != tree.root:
            raise ValueError(
                f"Root mismatch: document has {recorded}, addresses give {tree.root}"
            )
        return tree

    @classmethod
    def from_file(cls, path: str) -> "WhitelistTree":
        """
        Load a tree from a JSON file.

        The file holds either a plain array of addresses or a document
        written by save_to_file.
        """
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        if isinstance(data, list):
            return cls(data)
        return cls.from_export(data)

    def save_to_file(self, path: str) -> None:
        Path(path).write_text(json.dumps(self.export(), indent=2), encoding="utf-8")
