"""De-overlapping of alignment regions and band-width inference."""

from __future__ import annotations

from .options import AlignmentRegion, MemOptions


def _drop_excluded(regions: list[AlignmentRegion]) -> list[AlignmentRegion]:
    return [r for r in regions if r.qe > r.qb]


def sort_dedup(opt: MemOptions, regions: list[AlignmentRegion]) -> list[AlignmentRegion]:
    """Remove redundant and identical regions; return the rest, best first.

    Two regions on the same sequence whose overlap on both the reference and
    the query exceeds mask_level_redun of the shorter one are redundant, and
    the lower-scoring one is dropped. The result is ordered by descending
    score, then by reference and query start.
    """
    if len(regions) <= 1:
        return list(regions)
    regs = sorted(regions, key=lambda r: r.re)
    for reg in regs:
        reg.n_comp = 1
    for i in range(1, len(regs)):
        p = regs[i]
        prev = regs[i - 1]
        if p.rid != prev.rid or p.rb >= prev.re + opt.max_chain_gap:
            continue
        for j in range(i - 1, -1, -1):
            q = regs[j]
            if p.rid != q.rid or p.rb >= q.re + opt.max_chain_gap:
                break
            if q.qe == q.qb:
                continue
            overlap_ref = q.re - p.rb
            overlap_query = q.qe - p.qb if q.qb < p.qb else p.qe - q.qb
            min_ref = min(q.re - q.rb, p.re - p.rb)
            min_query = min(q.qe - q.qb, p.qe - p.qb)
            if (overlap_ref > opt.mask_level_redun * min_ref
                    and overlap_query > opt.mask_level_redun * min_query):
                if p.score < q.score:
                    p.qe = p.qb
                    break
                q.qe = q.qb

    regs = _drop_excluded(regs)
    regs.sort(key=lambda r: (-r.score, r.rb, r.qb))
    for prev, cur in zip(regs, regs[1:]):
        if cur.score == prev.score and cur.rb == prev.rb and cur.qb == prev.qb:
            cur.qe = cur.qb
    if not regs:
        return regs
    return [regs[0]] + _drop_excluded(regs[1:])


def infer_bandwidth(l1: int, l2: int, score: int, a: int, q: int, r: int) -> int:
    """Band width needed for a global alignment of lengths l1 and l2 reaching score."""
    if l1 == l2 and l1 * a - score < (q + r - a) << 1:
        return 0
    w = int((min(l1, l2) * a - score - q) / r + 2.0)
    return max(w, abs(l1 - l2))