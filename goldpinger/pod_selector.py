"""Choosing which peers to ping with rendezvous hashing."""

from __future__ import annotations

from typing import Callable, Iterable, Mapping, Optional, TypeVar, Union

_MASK = (1 << 64) - 1
_P1 = 11400714785074694791
_P2 = 14029467366897019727
_P3 = 1609587929392839161
_P4 = 9650029242287828579
_P5 = 2870177450012600261

_Pod = TypeVar("_Pod")


def _rotl(value: int, bits: int) -> int:
    return ((value << bits) | (value >> (64 - bits))) & _MASK


def _round(acc: int, lane: int) -> int:
    acc = (acc + lane * _P2) & _MASK
    return (_rotl(acc, 31) * _P1) & _MASK


def _merge(acc: int, value: int) -> int:
    acc ^= _round(0, value)
    return (acc * _P1 + _P4) & _MASK


def xxhash64(data: Union[str, bytes], seed: int = 0) -> int:
    """The 64-bit xxHash of ``data`` (strings are hashed as UTF-8)."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    seed &= _MASK
    length = len(data)
    pos = 0
    if length >= 32:
        v1 = (seed + _P1 + _P2) & _MASK
        v2 = (seed + _P2) & _MASK
        v3 = seed
        v4 = (seed - _P1) & _MASK
        while pos + 32 <= length:
            v1 = _round(v1, int.from_bytes(data[pos : pos + 8], "little"))
            v2 = _round(v2, int.from_bytes(data[pos + 8 : pos + 16], "little"))
            v3 = _round(v3, int.from_bytes(data[pos + 16 : pos + 24], "little"))
            v4 = _round(v4, int.from_bytes(data[pos + 24 : pos + 32], "little"))
            pos += 32
        h = (_rotl(v1, 1) + _rotl(v2, 7) + _rotl(v3, 12) + _rotl(v4, 18)) & _MASK
        for v in (v1, v2, v3, v4):
            h = _merge(h, v)
    else:
        h = (seed + _P5) & _MASK
    h = (h + length) & _MASK
    while pos + 8 <= length:
        h ^= _round(0, int.from_bytes(data[pos : pos + 8], "little"))
        h = (_rotl(h, 27) * _P1 + _P4) & _MASK
        pos += 8
    if pos + 4 <= length:
        h ^= (int.from_bytes(data[pos : pos + 4], "little") * _P1) & _MASK
        h = (_rotl(h, 23) * _P2 + _P3) & _MASK
        pos += 4
    for byte in data[pos:]:
        h ^= (byte * _P5) & _MASK
        h = (_rotl(h, 11) * _P1) & _MASK
    h ^= h >> 33
    h = (h * _P2) & _MASK
    h ^= h >> 29
    h = (h * _P3) & _MASK
    h ^= h >> 32
    return h


def _xorshift_mult64(x: int) -> int:
    x ^= x >> 12
    x = (x ^ (x << 25)) & _MASK
    x ^= x >> 27
    return (x * 2685821657736338717) & _MASK


class Rendezvous:
    """Highest-random-weight hashing over a set of node names."""

    def __init__(
        self,
        nodes: Iterable[str] = (),
        hasher: Optional[Callable[[str], int]] = None,
    ):
        self._hash = hasher if hasher is not None else xxhash64
        self._nodes: dict[str, int] = {}
        for node in nodes:
            self.add(node)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node: object) -> bool:
        return node in self._nodes

    def add(self, node: str) -> None:
        self._nodes[node] = self._hash(node)

    def remove(self, node: str) -> None:
        """Forget ``node``; raises KeyError if it was never added."""
        del self._nodes[node]

    def _scores(self, key: str) -> list[tuple[int, str]]:
        key_hash = self._hash(key)
        return [(_xorshift_mult64(key_hash ^ h), node) for node, h in self._nodes.items()]

    def lookup(self, key: str) -> Optional[str]:
        """The node with the highest weight for ``key``, or None when empty."""
        best: Optional[tuple[int, str]] = None
        for score, node in self._scores(key):
            if best is None or score > best[0]:
                best = (score, node)
        return best[1] if best is not None else None

    def lookup_n(self, key: str, n: int) -> list[str]:
        """The ``n`` nodes with the highest weights for ``key``, best first."""
        if n < 0:
            raise ValueError("n must not be negative")
        ranked = sorted(self._scores(key), key=lambda item: item[0], reverse=True)
        return [node for _, node in ranked[:n]]


def select_pods(all_pods: Mapping[str, _Pod], ping_number: int, pod_name: str) -> dict[str, _Pod]:
    """Pick the pods to ping; ``ping_number`` of 0 (or at least all of them) means all."""
    if ping_number <= 0 or ping_number >= len(all_pods):
        return dict(all_pods)
    ring = Rendezvous(all_pods)
    return {name: all_pods[name] for name in ring.lookup_n(pod_name, ping_number)}