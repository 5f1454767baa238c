"""Alignment options and the records passed between alignment stages."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field

from .seqio import fill_scoring_matrix

MEM_MAPQ_COEF = 30.0
MEM_MAPQ_MAX = 60


class MemFlag(enum.IntFlag):
    """Behaviour switches held in MemOptions.flag."""

    NONE = 0
    PE = 0x2
    NOPAIRING = 0x4
    ALL = 0x8
    NO_MULTI = 0x10
    NO_RESCUE = 0x20
    REF_HDR = 0x100
    SOFTCLIP = 0x200
    SMARTPE = 0x400
    PRIMARY5 = 0x800
    KEEP_SUPP_MAPQ = 0x1000


@dataclass
class MemOptions:
    """Scoring, seeding, chaining and output parameters."""

    a: int = 1
    b: int = 4
    o_del: int = 6
    e_del: int = 1
    o_ins: int = 6
    e_ins: int = 1
    pen_unpaired: int = 17
    pen_clip5: int = 5
    pen_clip3: int = 5
    w: int = 100
    zdrop: int = 100
    max_mem_intv: int = 20
    score_threshold: int = 30
    flag: MemFlag = MemFlag.NONE
    min_seed_len: int = 19
    min_chain_weight: int = 0
    max_chain_extend: int = 1 << 30
    split_factor: float = 1.5
    split_width: int = 10
    max_occ: int = 500
    max_chain_gap: int = 10000
    n_threads: int = 1
    chunk_size: int = 10000000
    mask_level: float = 0.50
    drop_ratio: float = 0.50
    xa_drop_ratio: float = 0.80
    mask_level_redun: float = 0.95
    mapq_coef_len: float = 50.0
    mapq_coef_fac: int | None = None
    max_ins: int = 10000
    max_matesw: int = 50
    max_xa_hits: int = 5
    max_xa_hits_alt: int = 200
    mat: list[int] | None = None

    def __post_init__(self) -> None:
        if self.mapq_coef_fac is None:
            self.mapq_coef_fac = int(math.log(self.mapq_coef_len))
        if self.mat is None:
            self.mat = fill_scoring_matrix(self.a, self.b)
        self.flag = MemFlag(self.flag)


@dataclass
class AlignmentRegion:
    """An aligned region: [rb, re) on the reference, [qb, qe) on the query."""

    rb: int = 0
    re: int = 0
    qb: int = 0
    qe: int = 0
    rid: int = 0
    score: int = 0
    truesc: int = 0
    sub: int = 0
    alt_sc: int = 0
    csub: int = 0
    sub_n: int = 0
    w: int = 0
    seedcov: int = 0
    secondary: int = 0
    secondary_all: int = 0
    seedlen0: int = 0
    n_comp: int = 0
    is_alt: bool = False
    frac_rep: float = 0.0
    hash: int = 0


@dataclass
class Alignment:
    """A final alignment with CIGAR in BAM encoding (length << 4 | op)."""

    pos: int = 0
    rid: int = 0
    flag: int = 0
    is_rev: bool = False
    is_alt: bool = False
    mapq: int = 0
    nm: int = 0
    cigar: list[int] = field(default_factory=list)
    md: str = ""
    xa: str | None = None
    score: int = 0
    sub: int = 0
    alt_sc: int = 0

    @property
    def n_cigar(self) -> int:
        return len(self.cigar)


@dataclass
class PairStats:
    """Insert-size distribution for one read-pair orientation."""

    low: int = 0
    high: int = 0
    failed: bool = False
    avg: float = 0.0
    std: float = 0.0