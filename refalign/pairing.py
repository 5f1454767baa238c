"""Read-pair orientation and insert-size distribution estimation."""

from __future__ import annotations

import logging
import math
from typing import Sequence

from .options import AlignmentRegion, MemOptions, PairStats

logger = logging.getLogger(__name__)

MIN_RATIO = 0.8
MIN_DIR_CNT = 10
MIN_DIR_RATIO = 0.05
OUTLIER_BOUND = 2.0
MAPPING_BOUND = 3.0
MAX_STDDEV = 4.0

_ORIENT = "FR"


def _orientation_name(d: int) -> str:
    return _ORIENT[d >> 1 & 1] + _ORIENT[d & 1]


def infer_direction(l_pac: int, b1: int, b2: int) -> tuple[int, int]:
    """Return (orientation 0..3 as FF, FR, RF, RR, distance) of two hit starts."""
    r1 = b1 >= l_pac
    r2 = b2 >= l_pac
    p2 = b2 if r1 == r2 else (l_pac << 1) - 1 - b2
    dist = abs(p2 - b1)
    direction = (0 if r1 == r2 else 1) ^ (0 if p2 > b1 else 3)
    return direction, dist


def cal_sub(opt: MemOptions, regions: Sequence[AlignmentRegion]) -> int:
    """Score of the best hit significantly overlapping the top hit on the query."""
    top = regions[0]
    for reg in regions[1:]:
        b_max = max(reg.qb, top.qb)
        e_min = min(reg.qe, top.qe)
        if e_min > b_max:
            min_l = min(reg.qe - reg.qb, top.qe - top.qb)
            if e_min - b_max >= min_l * opt.mask_level:
                return reg.score
    return opt.min_seed_len * opt.a


def _percentile(values: list[int], frac: float) -> int:
    return values[int(frac * len(values) + 0.499)]


def _fit(stats: PairStats, sizes: list[int]) -> None:
    sizes.sort()
    p25 = _percentile(sizes, 0.25)
    p50 = _percentile(sizes, 0.50)
    p75 = _percentile(sizes, 0.75)
    stats.low = max(int(p25 - OUTLIER_BOUND * (p75 - p25) + 0.499), 1)
    stats.high = int(p75 + OUTLIER_BOUND * (p75 - p25) + 0.499)
    logger.info("(25, 50, 75) percentile: (%d, %d, %d)", p25, p50, p75)
    logger.info("low and high boundaries for computing mean and std.dev: (%d, %d)",
                stats.low, stats.high)
    inliers = [x for x in sizes if stats.low <= x <= stats.high]
    stats.avg = sum(inliers) / len(inliers)
    stats.std = math.sqrt(sum((x - stats.avg) ** 2 for x in inliers) / len(inliers))
    logger.info("mean and std.dev: (%.2f, %.2f)", stats.avg, stats.std)
    stats.low = int(p25 - MAPPING_BOUND * (p75 - p25) + 0.499)
    stats.high = int(p75 + MAPPING_BOUND * (p75 - p25) + 0.499)
    if stats.low > stats.avg - MAX_STDDEV * stats.std:
        stats.low = int(stats.avg - MAX_STDDEV * stats.std + 0.499)
    if stats.high < stats.avg + MAX_STDDEV * stats.std:
        stats.high = int(stats.avg + MAX_STDDEV * stats.std + 0.499)
    stats.low = max(stats.low, 1)
    logger.info("low and high boundaries for proper pairs: (%d, %d)", stats.low, stats.high)


def estimate_pair_stats(opt: MemOptions, l_pac: int,
                        regions: Sequence[Sequence[AlignmentRegion]]) -> list[PairStats]:
    """Infer insert-size statistics for the four orientations.

    regions holds one list of regions per read, the two ends of a pair
    interleaved. Only pairs whose both ends have a unique top hit on the
    same sequence contribute.
    """
    isize: list[list[int]] = [[], [], [], []]
    for i in range(len(regions) >> 1):
        r0, r1 = regions[2 * i], regions[2 * i + 1]
        if not r0 or not r1:
            continue
        if cal_sub(opt, r0) > MIN_RATIO * r0[0].score:
            continue
        if cal_sub(opt, r1) > MIN_RATIO * r1[0].score:
            continue
        if r0[0].rid != r1[0].rid:
            continue
        direction, dist = infer_direction(l_pac, r0[0].rb, r1[0].rb)
        if dist and dist <= opt.max_ins:
            isize[direction].append(dist)
    logger.info("# candidate unique pairs for (FF, FR, RF, RR): (%d, %d, %d, %d)",
                *(len(q) for q in isize))

    stats = [PairStats() for _ in range(4)]
    for d, (st, sizes) in enumerate(zip(stats, isize)):
        if len(sizes) < MIN_DIR_CNT:
            logger.info("skip orientation %s as there are not enough pairs", _orientation_name(d))
            st.failed = True
            continue
        logger.info("analyzing insert size distribution for orientation %s...",
                    _orientation_name(d))
        _fit(st, list(sizes))

    most = max(len(q) for q in isize)
    for d, (st, sizes) in enumerate(zip(stats, isize)):
        if not st.failed and len(sizes) < most * MIN_DIR_RATIO:
            st.failed = True
            logger.info("skip orientation %s", _orientation_name(d))
    return stats