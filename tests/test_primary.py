import pytest

from refalign.options import MEM_MAPQ_MAX, AlignmentRegion, MemOptions
from refalign.primary import (
    approx_mapq_se,
    hash64,
    mark_primary_se,
    reorder_primary5,
)


def _reg(qb, qe, rb, re, score, is_alt=False, **kw):
    return AlignmentRegion(qb=qb, qe=qe, rb=rb, re=re, score=score, is_alt=is_alt, **kw)


def test_hash64_is_deterministic_and_64_bit():
    values = [hash64(k) for k in range(100)]
    assert values == [hash64(k) for k in range(100)]
    assert all(0 <= v < 1 << 64 for v in values)
    assert len(set(values)) == 100


def test_hash64_wraps_negative_keys():
    assert hash64(-1) == hash64((1 << 64) - 1)


def test_mark_primary_empty():
    assert mark_primary_se(MemOptions(), [], 0) == 0


def test_non_overlapping_hits_are_all_primary():
    regs = [_reg(0, 50, 1000, 1050, 40), _reg(50, 100, 5000, 5050, 45)]
    n_pri = mark_primary_se(MemOptions(), regs, 7)
    assert n_pri == 2
    assert [r.score for r in regs] == [45, 40]
    assert all(r.secondary == -1 for r in regs)
    assert [r.secondary_all for r in regs] == [-1, -1]


def test_overlapping_hit_becomes_secondary():
    regs = [_reg(0, 100, 5000, 5100, 45), _reg(0, 100, 1000, 1100, 50)]
    n_pri = mark_primary_se(MemOptions(), regs, 3)
    assert n_pri == 2
    assert regs[0].score == 50
    assert regs[0].secondary == -1
    assert regs[0].sub == 45
    assert regs[0].sub_n == 1
    assert regs[1].secondary == 0
    assert regs[1].secondary_all == 0


def test_alt_hit_shadowing_primary():
    regs = [_reg(0, 100, 1000, 1100, 50), _reg(0, 100, 7000, 7100, 60, is_alt=True)]
    n_pri = mark_primary_se(MemOptions(), regs, 0)
    assert n_pri == 1
    assert not regs[0].is_alt
    assert regs[0].secondary == -1
    assert regs[0].secondary_all == 1
    assert regs[0].alt_sc == 60
    assert regs[1].is_alt
    assert regs[1].secondary_all == -1


def test_mapq_zero_when_sub_reaches_score():
    reg = _reg(0, 100, 0, 100, 40, sub=40)
    assert approx_mapq_se(MemOptions(), reg) == 0


def test_mapq_unique_perfect_hit_is_capped():
    reg = _reg(0, 100, 0, 100, 100)
    assert approx_mapq_se(MemOptions(), reg) == MEM_MAPQ_MAX


def test_mapq_decreases_with_suboptimal_hits_and_repeats():
    opt = MemOptions()
    base = approx_mapq_se(opt, _reg(0, 100, 0, 100, 60, sub=40))
    more_subs = approx_mapq_se(opt, _reg(0, 100, 0, 100, 60, sub=40, sub_n=3))
    repetitive = approx_mapq_se(opt, _reg(0, 100, 0, 100, 60, sub=40, frac_rep=0.5))
    assert 0 < base <= MEM_MAPQ_MAX
    assert more_subs < base
    assert repetitive < base


def test_reorder_primary5_moves_leftmost_first():
    regs = [
        _reg(50, 100, 1000, 1050, 50, secondary=-1, secondary_all=-1),
        _reg(0, 50, 3000, 3050, 45, secondary=-1, secondary_all=-1),
        _reg(0, 50, 9000, 9050, 40, secondary=1, secondary_all=1),
    ]
    reorder_primary5(30, regs)
    assert regs[0].qb == 0 and regs[0].rb == 3000
    assert regs[1].qb == 50
    assert regs[2].secondary == 0
    assert regs[2].secondary_all == 0


def test_reorder_primary5_single_primary_unchanged():
    regs = [
        _reg(50, 100, 1000, 1050, 50, secondary=-1),
        _reg(0, 50, 3000, 3050, 45, secondary=0),
    ]
    reorder_primary5(30, regs)
    assert regs[0].rb == 1000
    assert regs[1].secondary == 0


def test_reorder_primary5_rejects_secondary_first():
    regs = [
        _reg(50, 100, 1000, 1050, 50, secondary=2),
        _reg(0, 50, 3000, 3050, 45, secondary=-1),
        _reg(60, 100, 5000, 5040, 40, secondary=-1),
    ]
    with pytest.raises(ValueError):
        reorder_primary5(30, regs)