"""A minimal reader for BAM headers and alignment records."""

from __future__ import annotations

import enum
import gzip
import os
import struct
import sys
from dataclasses import dataclass, field
from typing import BinaryIO, Iterator

BAM_MAGIC = b"BAM\x01"
CIGAR_SHIFT = 4
CIGAR_MASK = (1 << CIGAR_SHIFT) - 1

_CORE = struct.Struct("<iiIIiiii")
_INT32 = struct.Struct("<i")
_UINT32 = struct.Struct("<I")


class BamFormatError(ValueError):
    """Malformed or truncated BAM data."""


class BamFlag(enum.IntFlag):
    """Bits of an alignment record's flag field."""

    PAIRED = 1
    PROPER_PAIR = 2
    UNMAP = 4
    MUNMAP = 8
    REVERSE = 16
    MREVERSE = 32
    READ1 = 64
    READ2 = 128
    SECONDARY = 256
    QCFAIL = 512
    DUP = 1024


class CigarOp(enum.IntEnum):
    """CIGAR operation codes."""

    MATCH = 0
    INS = 1
    DEL = 2
    REF_SKIP = 3
    SOFT_CLIP = 4
    HARD_CLIP = 5
    PAD = 6


@dataclass
class BamHeader:
    """Header text and the reference sequence names and lengths."""

    text: str = ""
    target_names: list[str] = field(default_factory=list)
    target_lens: list[int] = field(default_factory=list)

    @property
    def n_targets(self) -> int:
        return len(self.target_names)


@dataclass
class BamCore:
    """Fixed-size fields of an alignment record."""

    tid: int
    pos: int
    bin: int
    qual: int
    l_qname: int
    flag: int
    n_cigar: int
    l_qseq: int
    mtid: int
    mpos: int
    isize: int


@dataclass
class BamRecord:
    """An alignment record: fixed fields plus the variable-length data block."""

    core: BamCore
    data: bytes

    @property
    def data_len(self) -> int:
        return len(self.data)

    @property
    def _seq_offset(self) -> int:
        return self.core.l_qname + self.core.n_cigar * 4

    @property
    def _qual_offset(self) -> int:
        return self._seq_offset + ((self.core.l_qseq + 1) >> 1)

    @property
    def _aux_offset(self) -> int:
        return self._qual_offset + self.core.l_qseq

    @property
    def l_aux(self) -> int:
        return self.data_len - self._aux_offset

    def qname(self) -> str:
        """Read name without its terminating NUL."""
        raw = self.data[:self.core.l_qname]
        return raw.split(b"\x00", 1)[0].decode("latin-1")

    def cigar(self) -> list[int]:
        """CIGAR operations encoded as length << 4 | op."""
        start = self.core.l_qname
        return list(struct.unpack_from(f"<{self.core.n_cigar}I", self.data, start))

    def seq(self) -> bytes:
        """Read bases as 4-bit codes, one per byte."""
        packed = self.data[self._seq_offset:self._qual_offset]
        return bytes(packed[i >> 1] >> (4 * (1 - i % 2)) & 0xF for i in range(self.core.l_qseq))

    def qual(self) -> bytes:
        """Base qualities."""
        return self.data[self._qual_offset:self._aux_offset]

    def aux(self) -> bytes:
        """Raw optional-field block."""
        return self.data[self._aux_offset:]

    def is_reverse(self) -> bool:
        return bool(self.core.flag & BamFlag.REVERSE)

    def mate_is_reverse(self) -> bool:
        return bool(self.core.flag & BamFlag.MREVERSE)


def _read_exact(stream: BinaryIO, size: int, what: str) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise BamFormatError(f"truncated BAM data while reading {what}")
    return data


def _read_int32(stream: BinaryIO, what: str) -> int:
    return _INT32.unpack(_read_exact(stream, 4, what))[0]


def read_header(stream: BinaryIO) -> BamHeader:
    """Read the BAM header from a decompressed binary stream."""
    magic = stream.read(4)
    if magic != BAM_MAGIC:
        raise BamFormatError("invalid BAM binary header (this is not a BAM file).")
    l_text = _read_int32(stream, "header text length")
    if l_text < 0:
        raise BamFormatError("negative header text length")
    text = _read_exact(stream, l_text, "header text").split(b"\x00", 1)[0].decode("latin-1")
    n_targets = _read_int32(stream, "number of targets")
    if n_targets < 0:
        raise BamFormatError("negative number of targets")
    header = BamHeader(text=text)
    for _ in range(n_targets):
        name_len = _read_int32(stream, "target name length")
        if name_len < 0:
            raise BamFormatError("negative target name length")
        raw = _read_exact(stream, name_len, "target name")
        header.target_names.append(raw.split(b"\x00", 1)[0].decode("latin-1"))
        header.target_lens.append(_UINT32.unpack(_read_exact(stream, 4, "target length"))[0])
    return header


def read_record(stream: BinaryIO) -> BamRecord | None:
    """Read one alignment record; None at a clean end of file."""
    head = stream.read(4)
    if not head:
        return None
    if len(head) != 4:
        raise BamFormatError("truncated BAM record length")
    block_len = _INT32.unpack(head)[0]
    tid, pos, x2, x3, l_qseq, mtid, mpos, isize = _CORE.unpack(
        _read_exact(stream, _CORE.size, "record core"))
    core = BamCore(
        tid=tid, pos=pos,
        bin=x2 >> 16, qual=x2 >> 8 & 0xFF, l_qname=x2 & 0xFF,
        flag=x3 >> 16, n_cigar=x3 & 0xFFFF,
        l_qseq=l_qseq, mtid=mtid, mpos=mpos, isize=isize,
    )
    data_len = block_len - _CORE.size
    if data_len < 0:
        raise BamFormatError("record block shorter than its fixed fields")
    data = _read_exact(stream, data_len, "record data")
    return BamRecord(core=core, data=data)


def iter_records(stream: BinaryIO) -> Iterator[BamRecord]:
    """Yield records until the end of the stream."""
    while (record := read_record(stream)) is not None:
        yield record


def open_bam(path: str | os.PathLike) -> BinaryIO:
    """Open a BGZF-compressed BAM file, or standard input for '-', for reading."""
    if os.fspath(path) == "-":
        return gzip.GzipFile(fileobj=sys.stdin.buffer, mode="rb")
    return gzip.open(path, "rb")