"""Primary/secondary marking of single-end hits and their mapping quality."""

from __future__ import annotations

import math
from typing import Sequence

from .options import MEM_MAPQ_COEF, MEM_MAPQ_MAX, AlignmentRegion, MemOptions

INT_MAX = (1 << 31) - 1
_MASK64 = (1 << 64) - 1


def hash64(key: int) -> int:
    """Mix a 64-bit integer into a well-spread 64-bit hash."""
    key &= _MASK64
    key = (key + (~(key << 32) & _MASK64)) & _MASK64
    key ^= key >> 22
    key = (key + (~(key << 13) & _MASK64)) & _MASK64
    key ^= key >> 8
    key = (key + (key << 3)) & _MASK64
    key ^= key >> 15
    key = (key + (~(key << 27) & _MASK64)) & _MASK64
    key ^= key >> 31
    return key


def _gap_tolerance(opt: MemOptions) -> int:
    return max(opt.a + opt.b, opt.o_del + opt.e_del, opt.o_ins + opt.e_ins)


def _mark_core(opt: MemOptions, regions: Sequence[AlignmentRegion], n: int) -> None:
    tolerance = _gap_tolerance(opt)
    kept = [0]
    for i in range(1, n):
        cur = regions[i]
        for j in kept:
            top = regions[j]
            b_max = max(top.qb, cur.qb)
            e_min = min(top.qe, cur.qe)
            if e_min > b_max:
                min_l = min(cur.qe - cur.qb, top.qe - top.qb)
                if e_min - b_max >= min_l * opt.mask_level:
                    if top.sub == 0:
                        top.sub = cur.score
                    if top.score - cur.score <= tolerance and (top.is_alt or not cur.is_alt):
                        top.sub_n += 1
                    cur.secondary = j
                    break
        else:
            kept.append(i)


def mark_primary_se(opt: MemOptions, regions: list[AlignmentRegion], read_id: int) -> int:
    """Sort regions in place and mark secondary hits; return the non-ALT count.

    Afterwards secondary is -1 for primary hits or the index of the shadowing
    hit, and secondary_all holds the same relation computed over ALT and
    non-ALT hits together.
    """
    n = len(regions)
    if n == 0:
        return 0
    n_pri = 0
    for i, reg in enumerate(regions):
        reg.sub = 0
        reg.alt_sc = 0
        reg.secondary = -1
        reg.secondary_all = -1
        reg.hash = hash64(read_id + i)
        if not reg.is_alt:
            n_pri += 1
    regions.sort(key=lambda r: (-r.score, r.is_alt, r.hash))
    _mark_core(opt, regions, n)
    for i, reg in enumerate(regions):
        reg.secondary_all = i
        if not reg.is_alt and reg.secondary >= 0 and regions[reg.secondary].is_alt:
            reg.alt_sc = regions[reg.secondary].score
    if n_pri < n:
        if n_pri > 0:
            regions.sort(key=lambda r: (r.is_alt, -r.score, r.hash))
        new_index = [0] * n
        for i, reg in enumerate(regions):
            new_index[reg.secondary_all] = i
        for reg in regions:
            if reg.secondary >= 0:
                reg.secondary_all = new_index[reg.secondary]
                if reg.is_alt:
                    reg.secondary = INT_MAX
            else:
                reg.secondary_all = -1
        if n_pri > 0:
            for reg in regions[:n_pri]:
                reg.sub = 0
                reg.secondary = -1
            _mark_core(opt, regions, n_pri)
    else:
        for reg in regions:
            reg.secondary_all = reg.secondary
    return n_pri


def approx_mapq_se(opt: MemOptions, region: AlignmentRegion) -> int:
    """Approximate mapping quality of a single-end hit."""
    sub = region.sub if region.sub else opt.min_seed_len * opt.a
    sub = max(region.csub, sub)
    if sub >= region.score:
        return 0
    length = max(region.qe - region.qb, region.re - region.rb)
    identity = 1.0 - (length * opt.a - region.score) / (opt.a + opt.b) / length
    if region.score == 0:
        mapq = 0
    elif opt.mapq_coef_len > 0:
        tmp = 1.0 if length < opt.mapq_coef_len else opt.mapq_coef_fac / math.log(length)
        tmp *= identity * identity
        mapq = int(6.02 * (region.score - sub) / opt.a * tmp * tmp + 0.499)
    else:
        mapq = int(MEM_MAPQ_COEF * (1.0 - sub / region.score) * math.log(region.seedcov) + 0.499)
        if identity < 0.95:
            mapq = int(mapq * identity * identity + 0.499)
    if region.sub_n > 0:
        mapq -= int(4.343 * math.log(region.sub_n + 1) + 0.499)
    mapq = min(max(mapq, 0), MEM_MAPQ_MAX)
    return int(mapq * (1.0 - region.frac_rep) + 0.499)


def reorder_primary5(threshold: int, regions: list[AlignmentRegion]) -> None:
    """Move the primary hit closest to the read's 5' end to the front, in place."""
    candidates = [
        k for k, reg in enumerate(regions)
        if reg.secondary < 0 and not reg.is_alt and reg.score >= threshold
    ]
    if len(candidates) <= 1:
        return
    left_k = min(candidates, key=lambda k: (regions[k].qb, k))
    if regions[0].secondary >= 0:
        raise ValueError("the first region must be primary")
    if left_k == 0:
        return
    regions[0], regions[left_k] = regions[left_k], regions[0]
    for reg in regions[1:]:
        if reg.secondary == 0:
            reg.secondary = left_k
        elif reg.secondary == left_k:
            reg.secondary = 0
        if reg.secondary_all == 0:
            reg.secondary_all = left_k
        elif reg.secondary_all == left_k:
            reg.secondary_all = 0