from refalign.bntseq import Annotation, ReferenceSet
from refalign.options import AlignmentRegion, MemOptions, PairStats
from refalign.pairhits import pair_hits, raw_mapq

L_PAC = 10000


def _bns():
    return ReferenceSet(l_pac=L_PAC, anns=[Annotation(name="chr1", offset=0, length=L_PAC)])


def _fr_stats(failed_fr=False):
    stats = [PairStats(failed=True) for _ in range(4)]
    stats[1] = PairStats(low=100, high=500, avg=300.0, std=50.0, failed=failed_fr)
    return stats


def _fwd(rb, score):
    return AlignmentRegion(rb=rb, re=rb + 100, qb=0, qe=100, rid=0, score=score)


def _rev(fwd_pos, score):
    rb = 2 * L_PAC - 1 - fwd_pos
    return AlignmentRegion(rb=rb, re=rb + 100, qb=0, qe=100, rid=0, score=score)


def test_raw_mapq_zero_difference():
    assert raw_mapq(0, 1) == 0


def test_raw_mapq_grows_with_difference_and_shrinks_with_match_score():
    assert raw_mapq(20, 1) > raw_mapq(10, 1)
    assert raw_mapq(10, 2) < raw_mapq(10, 1)


def test_single_proper_pair():
    regions = [[_fwd(1000, 100)], [_rev(1300, 100)]]
    score, sub, n_sub, z = pair_hits(MemOptions(), _bns(), _fr_stats(), regions, 1, [1, 1])
    assert score == 200
    assert sub == 0
    assert n_sub == 0
    assert z == [0, 0]


def test_pair_outside_insert_range_is_not_paired():
    regions = [[_fwd(1000, 100)], [_rev(3000, 100)]]
    result = pair_hits(MemOptions(), _bns(), _fr_stats(), regions, 1, [1, 1])
    assert result == (0, 0, 0, None)


def test_failed_orientation_is_not_paired():
    regions = [[_fwd(1000, 100)], [_rev(1300, 100)]]
    result = pair_hits(MemOptions(), _bns(), _fr_stats(failed_fr=True), regions, 1, [1, 1])
    assert result == (0, 0, 0, None)


def test_no_primary_hits_gives_no_pair():
    regions = [[_fwd(1000, 100)], [_rev(1300, 100)]]
    result = pair_hits(MemOptions(), _bns(), _fr_stats(), regions, 1, [0, 1])
    assert result == (0, 0, 0, None)


def test_best_of_two_mate_hits_is_chosen():
    regions = [[_fwd(1000, 100)], [_rev(1300, 100), _rev(1310, 95)]]
    score, sub, n_sub, z = pair_hits(MemOptions(), _bns(), _fr_stats(), regions, 5, [1, 2])
    assert z == [0, 0]
    assert score > sub > 0
    assert n_sub == 1


def test_pair_result_is_deterministic():
    regions = [[_fwd(1000, 100)], [_rev(1300, 100), _rev(1310, 95)]]
    first = pair_hits(MemOptions(), _bns(), _fr_stats(), regions, 9, [1, 2])
    second = pair_hits(MemOptions(), _bns(), _fr_stats(), regions, 9, [1, 2])
    assert first == second