import pytest

from refalign.bntseq import Annotation, ReferenceSet
from refalign.options import Alignment, MemFlag, MemOptions
from refalign.samout import format_cigar, format_sam, reference_length
from refalign.seqio import SequenceRecord


@pytest.fixture
def bns():
    return ReferenceSet(
        l_pac=2000,
        anns=[
            Annotation(name="chr1", anno="first\tcontig", offset=0, length=1000),
            Annotation(name="chr2", anno="", offset=1000, length=1000),
        ],
    )


@pytest.fixture
def record():
    return SequenceRecord(name="read1", seq="ACGTTACGGA", qual="IIIIHHHHGG")


def _aln(**kw):
    base = dict(pos=99, rid=0, cigar=[10 << 4 | 0], md="10", nm=0, mapq=60, score=10, sub=0)
    base.update(kw)
    return Alignment(**base)


def test_reference_length_counts_matches_and_deletions():
    cigar = [10 << 4 | 0, 2 << 4 | 1, 3 << 4 | 2, 5 << 4 | 3]
    assert reference_length(cigar) == 10 + 3


def test_format_cigar_unaligned():
    assert format_cigar(MemOptions(), Alignment(), 0) == "*"


def test_format_cigar_clip_primary_and_supplementary():
    aln = _aln(cigar=[5 << 4 | 3, 10 << 4 | 0])
    primary = format_cigar(MemOptions(), aln, 0)
    supplementary = format_cigar(MemOptions(), aln, 1)
    assert primary == "5S10M"
    assert supplementary == primary.replace("S", "H")


def test_format_cigar_softclip_flag_keeps_soft_clips():
    opt = MemOptions(flag=MemFlag.SOFTCLIP)
    aln = _aln(cigar=[5 << 4 | 3, 10 << 4 | 0])
    assert format_cigar(opt, aln, 1) == format_cigar(opt, aln, 0)


def test_forward_record_fields(bns, record):
    aln = _aln()
    line = format_sam(MemOptions(), bns, record, [aln], 0)
    assert line.endswith("\n")
    fields = line.rstrip("\n").split("\t")
    assert fields[0] == record.name
    assert int(fields[1]) == 0
    assert fields[2] == "chr1"
    assert fields[3] == str(aln.pos + 1)
    assert fields[4] == str(aln.mapq)
    assert fields[5] == format_cigar(MemOptions(), aln, 0)
    assert fields[6:9] == ["*", "0", "0"]
    assert fields[9] == record.seq
    assert fields[10] == record.qual
    assert f"NM:i:{aln.nm}" in fields
    assert f"MD:Z:{aln.md}" in fields
    assert f"AS:i:{aln.score}" in fields


def test_reverse_record_is_reverse_complemented(bns, record):
    aln = _aln(is_rev=True)
    fields = format_sam(MemOptions(), bns, record, [aln], 0).rstrip("\n").split("\t")
    assert int(fields[1]) & 0x10
    back = fields[9][::-1].translate(str.maketrans("ACGT", "TGCA"))
    assert back == record.seq
    assert fields[10] == record.qual[::-1]


def test_unmapped_without_mate(bns, record):
    aln = Alignment(rid=-1, pos=-1, flag=0x4, score=-1, sub=-1)
    fields = format_sam(MemOptions(), bns, record, [aln], 0).rstrip("\n").split("\t")
    assert int(fields[1]) & 0x4
    assert fields[2:6] == ["*", "0", "0", "*"]
    assert not any(f.startswith("NM:i:") for f in fields)


def test_unmapped_read_takes_mate_coordinates(bns, record):
    aln = Alignment(rid=-1, pos=-1, flag=0x4, score=-1, sub=-1)
    mate = _aln(pos=49)
    fields = format_sam(MemOptions(), bns, record, [aln], 0, mate).rstrip("\n").split("\t")
    flag = int(fields[1])
    assert flag & 0x4 and flag & 0x1
    assert fields[2] == "chr1"
    assert fields[3] == str(mate.pos + 1)
    assert fields[5] == "*"
    assert fields[6] == "="


def test_template_length_is_antisymmetric(bns, record):
    left = _aln(pos=100)
    right = _aln(pos=300, is_rev=True)
    f1 = format_sam(MemOptions(), bns, record, [left], 0, right).split("\t")
    f2 = format_sam(MemOptions(), bns, record, [right], 0, left).split("\t")
    assert f1[6] == "=" and f2[6] == "="
    assert int(f1[8]) == -int(f2[8])
    assert int(f1[8]) > 0
    assert int(f1[1]) & 0x20
    assert f"MC:Z:{format_cigar(MemOptions(), right, 0)}" in f1


def test_secondary_omits_sequence(bns, record):
    aln = _aln(flag=0x100)
    fields = format_sam(MemOptions(), bns, record, [aln], 0).split("\t")
    assert fields[9:11] == ["*", "*"]


def test_supplementary_lists_other_hits(bns, record):
    first = _aln()
    second = _aln(rid=1, pos=10, flag=0x800)
    line = format_sam(MemOptions(), bns, record, [first, second], 0)
    sa = next(f for f in line.rstrip("\n").split("\t") if f.startswith("SA:Z:"))
    assert sa.startswith("SA:Z:chr2,")
    assert sa.endswith(";")


def test_read_group_and_comment(bns):
    rec = SequenceRecord(name="r", seq="ACGT", comment="BC:Z:xyz")
    aln = _aln(cigar=[4 << 4 | 0])
    fields = format_sam(MemOptions(), bns, rec, [aln], 0, rg_id="grp1").rstrip("\n").split("\t")
    assert "RG:Z:grp1" in fields
    assert fields[-1] == rec.comment
    assert fields[10] == "*"


def test_reference_header_tag_replaces_tabs(bns, record):
    opt = MemOptions(flag=MemFlag.REF_HDR)
    fields = format_sam(opt, bns, record, [_aln()], 0).rstrip("\n").split("\t")
    xr = next(f for f in fields if f.startswith("XR:Z:"))
    assert xr == "XR:Z:" + bns.anns[0].anno.replace("\t", " ")


def test_alt_score_ratio_tag(bns, record):
    aln = _aln(score=3, alt_sc=4)
    fields = format_sam(MemOptions(), bns, record, [aln], 0).rstrip("\n").split("\t")
    assert "pa:f:0.750" in fields