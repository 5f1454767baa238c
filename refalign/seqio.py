"""Batched read input, scoring matrices and SAM header helpers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence, Union

from .bntseq import ReferenceSet

logger = logging.getLogger(__name__)

_MAX_RG_ID = 255

_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "\\": "\\"}


class ReadGroupError(ValueError):
    """A read group line that cannot be used."""


@dataclass
class SequenceRecord:
    """One query read with its optional comment, quality and SAM output."""

    name: str
    seq: str
    comment: str | None = None
    qual: str | None = None
    id: int = 0
    sam: str | None = None

    @property
    def l_seq(self) -> int:
        return len(self.seq)


RecordLike = Union[SequenceRecord, Sequence[str]]


def trim_read_number(name: str) -> str:
    """Drop a trailing '/<digit>' read number from a read name."""
    if len(name) > 2 and name[-2] == "/" and name[-1].isdigit():
        return name[:-2]
    return name


def _to_record(item: RecordLike, index: int) -> SequenceRecord:
    if isinstance(item, SequenceRecord):
        name, comment, seq, qual = item.name, item.comment, item.seq, item.qual
    else:
        name, comment, seq, *rest = item
        qual = rest[0] if rest else None
    return SequenceRecord(
        name=trim_read_number(name),
        seq=seq,
        comment=comment or None,
        qual=qual or None,
        id=index,
    )


def read_batch(reader1: Iterable[RecordLike], reader2: Iterable[RecordLike] | None = None,
               chunk_size: int = 10000000) -> list[SequenceRecord]:
    """Read records until their total length reaches chunk_size.

    With a second reader the two are interleaved as pairs, and a batch never
    ends between the two ends of a pair. Records may be SequenceRecord
    objects or (name, comment, seq[, qual]) tuples.
    """
    first = iter(reader1)
    second = iter(reader2) if reader2 is not None else None
    seqs: list[SequenceRecord] = []
    size = 0
    for item1 in first:
        item2 = None
        if second is not None:
            item2 = next(second, None)
            if item2 is None:
                logger.warning("the 2nd file has fewer sequences.")
                break
        record = _to_record(item1, len(seqs))
        seqs.append(record)
        size += record.l_seq
        if item2 is not None:
            record = _to_record(item2, len(seqs))
            seqs.append(record)
            size += record.l_seq
        if size >= chunk_size and len(seqs) % 2 == 0:
            break
    if size == 0 and second is not None and next(second, None) is not None:
        logger.warning("the 1st file has fewer sequences.")
    return seqs


def classify_pairs(seqs: Iterable[SequenceRecord]) -> tuple[list[SequenceRecord], list[SequenceRecord]]:
    """Split reads into (singles, pairs) where pairs are adjacent same-name reads."""
    singles: list[SequenceRecord] = []
    pairs: list[SequenceRecord] = []
    prev: SequenceRecord | None = None
    for record in seqs:
        if prev is None:
            prev = record
        elif record.name == prev.name:
            pairs.extend((prev, record))
            prev = None
        else:
            singles.append(prev)
            prev = record
    if prev is not None:
        singles.append(prev)
    return singles, pairs


def fill_scoring_matrix(a: int, b: int) -> list[int]:
    """5x5 scoring matrix: a on matches, -b on mismatches, -1 for ambiguous bases."""
    mat: list[int] = []
    for i in range(4):
        mat.extend(a if i == j else -b for j in range(4))
        mat.append(-1)
    mat.extend([-1] * 5)
    return mat


def escape(text: str) -> str:
    """Expand the backslash escapes \\t, \\n, \\r and \\\\; others are dropped."""
    out: list[str] = []
    chars = iter(text)
    for ch in chars:
        if ch == "\\":
            nxt = next(chars, None)
            if nxt is not None and nxt in _ESCAPES:
                out.append(_ESCAPES[nxt])
        else:
            out.append(ch)
    return "".join(out)


def _count_sq_lines(header_text: str) -> int:
    return sum(1 for line in header_text.split("\n") if line.startswith("@SQ\t"))


def format_sam_header(bns: ReferenceSet, header_text: str | None = None,
                      program_line: str | None = None) -> str:
    """Build the SAM header: @SQ lines unless supplied, then extra lines and @PG."""
    lines: list[str] = []
    n_sq = _count_sq_lines(header_text) if header_text else 0
    if n_sq == 0:
        for ann in bns.anns:
            line = f"@SQ\tSN:{ann.name}\tLN:{ann.length}"
            if ann.is_alt:
                line += "\tAH:*"
            lines.append(line + "\n")
    elif n_sq != bns.n_seqs:
        logger.warning(
            "%d @SQ lines provided with -H; %d sequences in the index. Continue anyway.",
            n_sq, bns.n_seqs,
        )
    if header_text:
        lines.append(header_text + "\n")
    if program_line:
        lines.append(program_line + "\n")
    return "".join(lines)


def parse_read_group(line: str) -> tuple[str, str]:
    """Validate and unescape an @RG line; return (read group line, ID)."""
    if not line.startswith("@RG"):
        raise ReadGroupError("the read group line is not started with @RG")
    if "\t" in line:
        raise ReadGroupError(
            "the read group line contained literal <tab> characters -- replace with escaped tabs: \\t"
        )
    rg_line = escape(line)
    start = rg_line.find("\tID:")
    if start < 0:
        raise ReadGroupError("no ID within the read group line")
    start += 4
    end = start
    while end < len(rg_line) and rg_line[end] not in "\t\n":
        end += 1
    rg_id = rg_line[start:end]
    if len(rg_id) > _MAX_RG_ID:
        raise ReadGroupError("@RG:ID is longer than 255 characters")
    return rg_line, rg_id


def insert_header(line: str | None, header: str | None) -> str | None:
    """Append an escaped header line starting with '@'; other lines are ignored."""
    if not line or not line.startswith("@"):
        return header
    if header:
        return header + "\n" + escape(line)
    return escape(line)