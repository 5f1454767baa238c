"""Pairing the hits of the two ends of a read pair."""

from __future__ import annotations

import math
from typing import Sequence

from .bntseq import ReferenceSet
from .options import AlignmentRegion, MemOptions, PairStats
from .primary import hash64

_MASK32 = 0xFFFFFFFF
_MASK64 = (1 << 64) - 1


def raw_mapq(diff: float, a: int) -> int:
    """Phred-scaled quality of a score difference diff at match score a."""
    return int(6.02 * diff / a + 0.499)


def _pair_quality(opt: MemOptions, score_sum: int, dist: int, stats: PairStats) -> int:
    if stats.std:
        ns = (dist - stats.avg) / stats.std
    else:
        ns = 0.0 if dist == stats.avg else math.inf
    prob = 2.0 * math.erfc(abs(ns) * math.sqrt(0.5))
    log_prob = math.log(prob) if prob > 0 else -math.inf
    value = score_sum + 0.721 * log_prob * opt.a + 0.499
    if not math.isfinite(value):
        return 0
    return max(int(value), 0)


def pair_hits(opt: MemOptions, bns: ReferenceSet, pes: Sequence[PairStats],
              regions: Sequence[Sequence[AlignmentRegion]], read_id: int,
              n_pri: Sequence[int]) -> tuple[int, int, int, list[int] | None]:
    """Find the best consistent pairing of the primary hits of two ends.

    Returns (score, sub, n_sub, z): the best pair score, the second best,
    the number of pairs scoring close to the second best, and the hit index
    chosen for each end. With no proper pair, returns (0, 0, 0, None).
    """
    l_pac = bns.l_pac
    keys: list[tuple[int, int]] = []
    for r in range(2):
        for i in range(n_pri[r]):
            e = regions[r][i]
            fwd = e.rb if e.rb < l_pac else (l_pac << 1) - 1 - e.rb
            x = ((e.rid << 32) | (fwd - bns.anns[e.rid].offset)) & _MASK64
            y = ((e.score << 32) | (i << 2) | (int(e.rb >= l_pac) << 1) | r) & _MASK64
            keys.append((x, y))
    keys.sort()

    last = [-1, -1, -1, -1]
    pairs: list[tuple[int, int]] = []
    for i, (xi, yi) in enumerate(keys):
        for r in range(2):
            direction = r << 1 | (yi >> 1 & 1)
            stats = pes[direction]
            if stats.failed:
                continue
            which = r << 1 | ((yi & 1) ^ 1)
            if last[which] < 0:
                continue
            for k in range(last[which], -1, -1):
                xk, yk = keys[k]
                if yk & 3 != which:
                    continue
                dist = xi - xk
                if dist > stats.high:
                    break
                if dist < stats.low:
                    continue
                q = _pair_quality(opt, (yi >> 32) + (yk >> 32), dist, stats)
                py = (k << 32) | i
                px = (q << 32) | (hash64(py ^ ((read_id << 8) & _MASK64)) & _MASK32)
                pairs.append((px, py))
        last[yi & 3] = i

    if not pairs:
        return 0, 0, 0, None
    tolerance = max(opt.a + opt.b, opt.o_del + opt.e_del, opt.o_ins + opt.e_ins)
    pairs.sort()
    best_x, best_y = pairs[-1]
    z = [0, 0]
    for idx in (best_y >> 32, best_y & _MASK32):
        y = keys[idx][1]
        z[y & 1] = (y & _MASK32) >> 2
    score = best_x >> 32
    sub = pairs[-2][0] >> 32 if len(pairs) > 1 else 0
    n_sub = sum(1 for px, _ in pairs[:-1] if sub - (px >> 32) <= tolerance)
    return score, sub, n_sub, z