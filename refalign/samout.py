"""Formatting alignments as SAM lines."""

from __future__ import annotations

from dataclasses import replace
from typing import Sequence

from .bntseq import NST_NT4_TABLE, ReferenceSet
from .options import Alignment, MemFlag, MemOptions
from .seqio import SequenceRecord

_OPS = "MIDSH"
_FORWARD = "ACGTN"
_REVERSE = "TGCAN"


def reference_length(cigar: Sequence[int]) -> int:
    """Number of reference bases spanned by match and deletion operations."""
    return sum(c >> 4 for c in cigar if (c & 0xF) in (0, 2))


def _is_clip(op: int) -> bool:
    return (op & 0xF) in (3, 4)


def format_cigar(opt: MemOptions, aln: Alignment, which: int) -> str:
    """CIGAR text; clips become hard clips for non-primary records unless soft clipping is forced."""
    if not aln.cigar:
        return "*"
    hard_allowed = not (opt.flag & MemFlag.SOFTCLIP) and not aln.is_alt
    parts = []
    for elem in aln.cigar:
        op = elem & 0xF
        if hard_allowed and op in (3, 4):
            op = 4 if which else 3
        parts.append(f"{elem >> 4}{_OPS[op]}")
    return "".join(parts)


def _raw_cigar(cigar: Sequence[int]) -> str:
    return "".join(f"{c >> 4}{_OPS[c & 0xF]}" for c in cigar)


def _seq_codes(seq) -> list[int]:
    if isinstance(seq, str):
        return [min(NST_NT4_TABLE[ord(ch)] if ord(ch) < 256 else 4, 4) for ch in seq]
    return [c if c < 5 else min(NST_NT4_TABLE[c], 4) for c in seq]


def _template_length(p: Alignment, m: Alignment) -> int:
    p0 = p.pos + (reference_length(p.cigar) - 1 if p.is_rev else 0)
    p1 = m.pos + (reference_length(m.cigar) - 1 if m.is_rev else 0)
    sign = 1 if p0 > p1 else -1 if p0 < p1 else 0
    return -(p0 - p1 + sign)


def format_sam(opt: MemOptions, bns: ReferenceSet, record: SequenceRecord,
               alignments: Sequence[Alignment], which: int,
               mate: Alignment | None = None, rg_id: str | None = None) -> str:
    """Return the SAM line, newline included, for alignments[which] of record."""
    p = replace(alignments[which])
    m = replace(mate) if mate is not None else None

    if m is not None:
        p.flag |= 0x1
    if p.rid < 0:
        p.flag |= 0x4
    if m is not None and m.rid < 0:
        p.flag |= 0x8
    if p.rid < 0 and m is not None and m.rid >= 0:
        p.rid, p.pos, p.is_rev, p.cigar = m.rid, m.pos, m.is_rev, []
    if m is not None and m.rid < 0 and p.rid >= 0:
        m.rid, m.pos, m.is_rev, m.cigar = p.rid, p.pos, p.is_rev, []
    if p.is_rev:
        p.flag |= 0x10
    if m is not None and m.is_rev:
        p.flag |= 0x20

    fields = [record.name, str((p.flag & 0xFFFF) | (0x100 if p.flag & 0x10000 else 0))]
    if p.rid >= 0:
        fields += [bns.anns[p.rid].name, str(p.pos + 1), str(p.mapq), format_cigar(opt, p, which)]
    else:
        fields += ["*", "0", "0", "*"]

    if m is not None and m.rid >= 0:
        fields.append("=" if p.rid == m.rid else bns.anns[m.rid].name)
        fields.append(str(m.pos + 1))
        if p.rid == m.rid and m.cigar and p.cigar:
            fields.append(str(_template_length(p, m)))
        else:
            fields.append("0")
    else:
        fields += ["*", "0", "0"]

    if p.flag & 0x100:
        fields += ["*", "*"]
    else:
        codes = _seq_codes(record.seq)
        qb, qe = 0, len(codes)
        trim = bool(p.cigar) and which and not (opt.flag & MemFlag.SOFTCLIP) and not p.is_alt
        if not p.is_rev:
            if trim:
                if _is_clip(p.cigar[0]):
                    qb += p.cigar[0] >> 4
                if _is_clip(p.cigar[-1]):
                    qe -= p.cigar[-1] >> 4
            fields.append("".join(_FORWARD[c] for c in codes[qb:qe]))
            fields.append(record.qual[qb:qe] if record.qual else "*")
        else:
            if trim:
                if _is_clip(p.cigar[0]):
                    qe -= p.cigar[0] >> 4
                if _is_clip(p.cigar[-1]):
                    qb += p.cigar[-1] >> 4
            fields.append("".join(_REVERSE[c] for c in reversed(codes[qb:qe])))
            fields.append(record.qual[qb:qe][::-1] if record.qual else "*")

    if p.cigar:
        fields.append(f"NM:i:{p.nm}")
        fields.append(f"MD:Z:{p.md}")
    if m is not None and m.cigar:
        fields.append(f"MC:Z:{format_cigar(opt, m, which)}")
    if p.score >= 0:
        fields.append(f"AS:i:{p.score}")
    if p.sub >= 0:
        fields.append(f"XS:i:{p.sub}")
    if rg_id:
        fields.append(f"RG:Z:{rg_id}")
    if not p.flag & 0x100:
        others = [r for i, r in enumerate(alignments) if i != which and not r.flag & 0x100]
        if others:
            sa = "".join(
                f"{bns.anns[r.rid].name},{r.pos + 1},{'+-'[int(r.is_rev)]},"
                f"{_raw_cigar(r.cigar)},{r.mapq},{r.nm};"
                for r in others
            )
            fields.append(f"SA:Z:{sa}")
        if p.alt_sc > 0:
            fields.append(f"pa:f:{p.score / p.alt_sc:.3f}")
    if p.xa:
        fields.append(f"XA:Z:{p.xa}")
    if record.comment:
        fields.append(record.comment)
    if opt.flag & MemFlag.REF_HDR and p.rid >= 0 and bns.anns[p.rid].anno:
        fields.append("XR:Z:" + bns.anns[p.rid].anno.replace("\t", " "))
    return "\t".join(fields) + "\n"