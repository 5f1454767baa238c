"""Seed chains: merging seeds, chain weights and chain filtering."""

from __future__ import annotations

from dataclasses import dataclass, field

from .bntseq import ReferenceSet
from .options import MemOptions

_MAX_WEIGHT = (1 << 30) - 1


@dataclass
class Seed:
    """An exact match of query [qbeg, qbeg+length) at reference rbeg."""

    rbeg: int
    qbeg: int
    length: int
    score: int | None = None

    def __post_init__(self) -> None:
        if self.score is None:
            self.score = self.length


@dataclass
class Chain:
    """Colinear seeds on one reference sequence."""

    seeds: list[Seed] = field(default_factory=list)
    rid: int = 0
    pos: int | None = None
    w: int = 0
    kept: int = 0
    is_alt: bool = False
    first: int = -1
    frac_rep: float = 0.0

    def __post_init__(self) -> None:
        if self.pos is None:
            self.pos = self.seeds[0].rbeg if self.seeds else 0

    @property
    def n(self) -> int:
        return len(self.seeds)

    @property
    def qbeg(self) -> int:
        return self.seeds[0].qbeg

    @property
    def qend(self) -> int:
        last = self.seeds[-1]
        return last.qbeg + last.length


def test_and_merge(opt: MemOptions, l_pac: int, chain: Chain, seed: Seed, seed_rid: int) -> bool:
    """Add seed to chain if it fits; True when the seed is absorbed."""
    first, last = chain.seeds[0], chain.seeds[-1]
    qend = last.qbeg + last.length
    rend = last.rbeg + last.length
    if seed_rid != chain.rid:
        return False
    if (seed.qbeg >= first.qbeg and seed.qbeg + seed.length <= qend
            and seed.rbeg >= first.rbeg and seed.rbeg + seed.length <= rend):
        return True
    if (last.rbeg < l_pac or first.rbeg < l_pac) and seed.rbeg >= l_pac:
        return False
    x = seed.qbeg - last.qbeg
    y = seed.rbeg - last.rbeg
    if (y >= 0 and x - y <= opt.w and y - x <= opt.w
            and x - last.length < opt.max_chain_gap
            and y - last.length < opt.max_chain_gap):
        chain.seeds.append(seed)
        return True
    return False


def _covered(spans: list[tuple[int, int]]) -> int:
    total, end = 0, 0
    for beg, length in spans:
        if beg >= end:
            total += length
        elif beg + length > end:
            total += beg + length - end
        end = max(end, beg + length)
    return total


def chain_weight(chain: Chain) -> int:
    """Bases covered by seeds, the smaller of query and reference coverage."""
    on_query = _covered([(s.qbeg, s.length) for s in chain.seeds])
    on_ref = _covered([(s.rbeg, s.length) for s in chain.seeds])
    return min(on_query, on_ref, _MAX_WEIGHT)


def filter_chains(opt: MemOptions, chains: list[Chain]) -> list[Chain]:
    """Drop light chains and chains shadowed by heavier overlapping ones.

    Returns the surviving chains, heaviest first, with w, kept and first set.
    """
    survivors: list[Chain] = []
    for chain in chains:
        chain.first = -1
        chain.kept = 0
        chain.w = chain_weight(chain)
        if chain.w >= opt.min_chain_weight:
            survivors.append(chain)
    if not survivors:
        return []
    survivors.sort(key=lambda c: -c.w)

    survivors[0].kept = 3
    kept_idx = [0]
    for i, cur in enumerate(survivors[1:], start=1):
        large_ovlp = False
        for j in kept_idx:
            other = survivors[j]
            b_max = max(other.qbeg, cur.qbeg)
            e_min = min(other.qend, cur.qend)
            if e_min > b_max and (not other.is_alt or cur.is_alt):
                min_l = min(cur.qend - cur.qbeg, other.qend - other.qbeg)
                if e_min - b_max >= min_l * opt.mask_level and min_l < opt.max_chain_gap:
                    large_ovlp = True
                    if other.first < 0:
                        other.first = i
                    if cur.w < other.w * opt.drop_ratio and other.w - cur.w >= opt.min_seed_len << 1:
                        break
        else:
            kept_idx.append(i)
            cur.kept = 2 if large_ovlp else 3

    for j in kept_idx:
        if survivors[j].first >= 0:
            survivors[survivors[j].first].kept = 1

    count = 0
    stop = len(survivors)
    for i, chain in enumerate(survivors):
        if chain.kept in (0, 3):
            continue
        count += 1
        if count >= opt.max_chain_extend:
            stop = i
            break
    for chain in survivors[stop:]:
        if chain.kept < 3:
            chain.kept = 0
    return [c for c in survivors if c.kept != 0]


def format_chains(bns: ReferenceSet, chains: list[Chain]) -> str:
    """Describe chains and their seeds, one line per chain."""
    lines = []
    for i, chain in enumerate(chains):
        parts = [f"* Found CHAIN({i}): n={chain.n}; weight={chain_weight(chain)}"]
        ann = bns.anns[chain.rid]
        for seed in chain.seeds:
            pos, is_rev = bns.depos(seed.rbeg)
            if is_rev:
                pos -= seed.length - 1
            strand = "-" if is_rev else "+"
            parts.append(
                f"\t{seed.score};{seed.length};{seed.qbeg},{seed.rbeg}"
                f"({ann.name}:{strand}{pos - ann.offset + 1})"
            )
        lines.append("".join(parts) + "\n")
    return "".join(lines)