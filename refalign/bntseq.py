"""Reference sequence sets: FASTA packing and the .ann/.amb/.pac index files."""

from __future__ import annotations

import getopt
import gzip
import io
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Iterable, Iterator

_SEED = 11
_MAX_COMMENT = 8191


def _build_nt4_table() -> bytes:
    table = bytearray([4] * 256)
    for code, bases in enumerate(("Aa", "Cc", "Gg", "Tt")):
        for base in bases:
            table[ord(base)] = code
    table[ord("-")] = 5
    return bytes(table)


NST_NT4_TABLE = _build_nt4_table()


def _nt4(char: str) -> int:
    value = ord(char)
    return NST_NT4_TABLE[value] if value < 256 else 4


class Rand48:
    """The 48-bit linear congruential generator behind srand48/lrand48."""

    _MULTIPLIER = 0x5DEECE66D
    _INCREMENT = 0xB
    _MASK = (1 << 48) - 1

    def __init__(self, seed: int) -> None:
        self._state = (((seed & 0xFFFFFFFF) << 16) | 0x330E) & self._MASK

    def next(self) -> int:
        """Return the next non-negative 31-bit value."""
        self._state = (self._MULTIPLIER * self._state + self._INCREMENT) & self._MASK
        return self._state >> 17


@dataclass
class Annotation:
    """One reference sequence in the concatenated pack."""

    name: str
    anno: str = ""
    offset: int = 0
    length: int = 0
    n_ambs: int = 0
    gi: int = 0
    is_alt: bool = False


@dataclass
class Ambiguity:
    """A run of ambiguous bases in the concatenated pack."""

    offset: int
    length: int
    amb: str


def _get_pac(pac: bytes, pos: int) -> int:
    return pac[pos >> 2] >> ((~pos & 3) << 1) & 3


def _pack(codes: bytes | bytearray) -> bytes:
    packed = bytearray((len(codes) + 3) // 4)
    for i, code in enumerate(codes):
        packed[i >> 2] |= code << ((~i & 3) << 1)
    return bytes(packed)


class _Scanner:
    """Whitespace-separated token reader over a text file's contents."""

    def __init__(self, text: str, fname: str) -> None:
        self._text = text
        self._pos = 0
        self._fname = fname

    def _eof(self) -> ValueError:
        return ValueError(f"Error reading {self._fname} : Unexpected end of file")

    def parse_error(self) -> ValueError:
        return ValueError(f"Parse error reading {self._fname}")

    def token(self) -> str:
        text, pos = self._text, self._pos
        while pos < len(text) and text[pos].isspace():
            pos += 1
        if pos >= len(text):
            self._pos = pos
            raise self._eof()
        start = pos
        while pos < len(text) and not text[pos].isspace():
            pos += 1
        self._pos = pos
        return text[start:pos]

    def integer(self) -> int:
        tok = self.token()
        try:
            return int(tok)
        except ValueError:
            raise self.parse_error() from None

    def rest_of_line(self) -> str:
        end = self._text.find("\n", self._pos)
        if end < 0:
            raise self._eof()
        line = self._text[self._pos:end][:_MAX_COMMENT]
        self._pos = end + 1
        return line


@dataclass
class ReferenceSet:
    """Names, offsets and ambiguous runs of a packed reference."""

    l_pac: int = 0
    seed: int = 0
    anns: list[Annotation] = field(default_factory=list)
    ambs: list[Ambiguity] = field(default_factory=list)
    pac_path: Path | None = None

    @property
    def n_seqs(self) -> int:
        return len(self.anns)

    @property
    def n_holes(self) -> int:
        return len(self.ambs)

    def dump(self, prefix: str | os.PathLike) -> None:
        """Write the .ann and .amb files for this set."""
        prefix = os.fspath(prefix)
        with open(prefix + ".ann", "w", encoding="latin-1", newline="\n") as fp:
            fp.write(f"{self.l_pac} {self.n_seqs} {self.seed}\n")
            for ann in self.anns:
                fp.write(f"{ann.gi} {ann.name}")
                fp.write(f" {ann.anno}\n" if ann.anno else "\n")
                fp.write(f"{ann.offset} {ann.length} {ann.n_ambs}\n")
        with open(prefix + ".amb", "w", encoding="latin-1", newline="\n") as fp:
            fp.write(f"{self.l_pac} {self.n_seqs} {self.n_holes}\n")
            for amb in self.ambs:
                fp.write(f"{amb.offset} {amb.length} {amb.amb}\n")

    @classmethod
    def restore_core(cls, ann_path, amb_path, pac_path) -> "ReferenceSet":
        """Load a set from explicit .ann, .amb and .pac paths."""
        ann_name = os.fspath(ann_path)
        with open(ann_name, "r", encoding="latin-1", newline="") as fp:
            scan = _Scanner(fp.read(), ann_name)
        bns = cls(l_pac=scan.integer())
        n_seqs = scan.integer()
        bns.seed = scan.integer()
        for _ in range(n_seqs):
            gi = scan.integer()
            name = scan.token()
            comment = scan.rest_of_line()
            anno = comment[1:] if len(comment) > 1 and comment != " (null)" else ""
            offset = scan.integer()
            length = scan.integer()
            n_ambs = scan.integer()
            bns.anns.append(Annotation(name=name, anno=anno, offset=offset,
                                       length=length, n_ambs=n_ambs, gi=gi))

        amb_name = os.fspath(amb_path)
        with open(amb_name, "r", encoding="latin-1", newline="") as fp:
            scan = _Scanner(fp.read(), amb_name)
        l_pac = scan.integer()
        amb_seqs = scan.integer()
        n_holes = scan.integer()
        if l_pac != bns.l_pac or amb_seqs != bns.n_seqs:
            raise ValueError("inconsistent .ann and .amb files.")
        for _ in range(n_holes):
            offset = scan.integer()
            length = scan.integer()
            amb = scan.token()
            bns.ambs.append(Ambiguity(offset=offset, length=length, amb=amb[0]))

        pac = Path(pac_path)
        with open(pac, "rb"):
            pass
        bns.pac_path = pac
        return bns

    @classmethod
    def restore(cls, prefix: str | os.PathLike) -> "ReferenceSet":
        """Load the set stored under prefix, applying an optional .alt file."""
        prefix = os.fspath(prefix)
        bns = cls.restore_core(prefix + ".ann", prefix + ".amb", prefix + ".pac")
        try:
            with open(prefix + ".alt", "r", encoding="latin-1", newline="") as fp:
                text = fp.read()
        except OSError:
            return bns
        index = {ann.name: i for i, ann in enumerate(bns.anns)}
        for name in _alt_names(text):
            if not name.startswith("@") and name in index:
                bns.anns[index[name]].is_alt = True
        return bns

    def depos(self, pos: int) -> tuple[int, bool]:
        """Map a forward-reverse coordinate to (forward coordinate, is_reverse)."""
        if pos >= self.l_pac:
            return (self.l_pac << 1) - 1 - pos, True
        return pos, False

    def pos_to_rid(self, pos: int) -> int:
        """Index of the sequence holding forward position pos, or -1."""
        if pos >= self.l_pac:
            return -1
        left, mid, right = 0, 0, self.n_seqs
        while left < right:
            mid = (left + right) >> 1
            if pos >= self.anns[mid].offset:
                if mid == self.n_seqs - 1:
                    break
                if pos < self.anns[mid + 1].offset:
                    break
                left = mid + 1
            else:
                right = mid
        return mid

    def interval_to_rid(self, rb: int, re: int) -> int:
        """Sequence index of [rb, re); -1 across sequences, -2 across strands."""
        if rb < self.l_pac < re:
            return -2
        if rb > re:
            raise ValueError("interval begins after it ends")
        rid_b = self.pos_to_rid(self.depos(rb)[0])
        rid_e = self.pos_to_rid(self.depos(re - 1)[0]) if rb < re else rid_b
        return rid_b if rid_b == rid_e else -1

    def count_ambiguous(self, pos: int, length: int) -> int:
        """Number of ambiguous bases in the first overlapping run found."""
        left, right, count = 0, self.n_holes, 0
        while left < right:
            mid = (left + right) >> 1
            amb = self.ambs[mid]
            amb_end = amb.offset + amb.length
            if pos >= amb_end:
                left = mid + 1
            elif pos + length <= amb.offset:
                right = mid
            else:
                if pos >= amb.offset:
                    count += amb_end - pos if amb_end < pos + length else length
                else:
                    count += amb.length if amb_end < pos + length else length - (amb.offset - pos)
                break
        return count

    def fetch_seq(self, pac: bytes, beg: int, mid: int, end: int) -> tuple[bytes, int, int, int]:
        """Fetch [beg, end) clipped to the sequence holding mid.

        Returns (codes, beg, end, rid) with the clipped bounds.
        """
        if end < beg:
            beg, end = end, beg
        if not beg <= mid < end:
            raise ValueError("mid must lie within [beg, end)")
        pos, is_rev = self.depos(mid)
        rid = self.pos_to_rid(pos)
        far_beg = self.anns[rid].offset
        far_end = far_beg + self.anns[rid].length
        if is_rev:
            far_beg, far_end = (self.l_pac << 1) - far_end, (self.l_pac << 1) - far_beg
        beg = max(beg, far_beg)
        end = min(end, far_end)
        seq = get_seq(self.l_pac, pac, beg, end)
        if len(seq) != end - beg:
            raise RuntimeError(
                f"fetch_seq: begin={beg}, mid={mid}, end={end}, len={len(seq)}, "
                f"rid={rid}, far_beg={far_beg}, far_end={far_end}"
            )
        return seq, beg, end, rid


def _alt_names(text: str) -> Iterator[str]:
    pos = 0
    while True:
        stops = [i for i in (text.find(c, pos) for c in "\t\n\r") if i >= 0]
        if not stops:
            return
        stop = min(stops)
        yield text[pos:stop]
        newline = text.find("\n", stop)
        if newline < 0:
            return
        pos = newline + 1


def read_fasta(stream: Iterable[str | bytes]) -> Iterator[tuple[str, str, str]]:
    """Yield (name, comment, sequence) from FASTA or FASTQ lines."""
    name: str | None = None
    comment = ""
    parts: list[str] = []
    qual_left = -1
    for raw in stream:
        line = raw.decode("latin-1") if isinstance(raw, bytes) else raw
        line = line.rstrip("\r\n")
        if qual_left >= 0:
            qual_left -= len(line)
            if qual_left <= 0:
                qual_left = -1
            continue
        if line[:1] in (">", "@"):
            if name is not None:
                yield name, comment, "".join(parts)
            body = line[1:]
            cut = next((i for i, ch in enumerate(body) if ch.isspace()), len(body))
            name, comment = body[:cut], body[cut + 1:].rstrip()
            parts = []
        elif name is None:
            continue
        elif line[:1] == "+":
            seq = "".join(parts)
            yield name, comment, seq
            name = None
            qual_left = len(seq) if seq else -1
        else:
            parts.append("".join(line.split()))
    if name is not None:
        yield name, comment, "".join(parts)


def get_seq(l_pac: int, pac: bytes, beg: int, end: int) -> bytes:
    """Return 2-bit codes of [beg, end) on the forward-reverse coordinate.

    An interval bridging the two strands gives an empty result.
    """
    if end < beg:
        beg, end = end, beg
    end = min(end, l_pac << 1)
    beg = max(beg, 0)
    if not (beg >= l_pac or end <= l_pac) or end <= beg:
        return b""
    if beg >= l_pac:
        beg_f = (l_pac << 1) - 1 - end
        end_f = (l_pac << 1) - 1 - beg
        return bytes(3 - _get_pac(pac, k) for k in range(end_f, beg_f, -1))
    return bytes(_get_pac(pac, k) for k in range(beg, end))


def fasta_to_pac(records: Iterable[tuple[str, str, str]], prefix: str | os.PathLike,
                 forward_only: bool = False) -> int:
    """Pack records into prefix.pac/.ann/.amb and return the packed length."""
    prefix = os.fspath(prefix)
    rng = Rand48(_SEED)
    bns = ReferenceSet(seed=_SEED)
    codes = bytearray()
    for name, comment, seq in records:
        prev = bns.anns[-1] if bns.anns else None
        ann = Annotation(name=name, anno=comment if comment else "(null)",
                         offset=prev.offset + prev.length if prev else 0,
                         length=len(seq))
        bns.anns.append(ann)
        last = ""
        for i, base in enumerate(seq):
            code = _nt4(base)
            if code >= 4:
                if last == base:
                    bns.ambs[-1].length += 1
                else:
                    bns.ambs.append(Ambiguity(offset=ann.offset + i, length=1, amb=base))
                    ann.n_ambs += 1
                code = rng.next() & 3
            last = base
            codes.append(code)
    if not forward_only:
        codes.extend(3 - c for c in reversed(bytes(codes)))
    bns.l_pac = len(codes)

    with open(prefix + ".pac", "wb") as fp:
        fp.write(_pack(codes))
        if bns.l_pac % 4 == 0:
            fp.write(b"\x00")
        fp.write(bytes([bns.l_pac % 4]))
    bns.dump(prefix)
    return bns.l_pac


def _read_input(path: str) -> str:
    if path == "-":
        data = sys.stdin.buffer.read()
    else:
        with open(path, "rb") as fp:
            data = fp.read()
    if data[:2] == b"\x1f\x8b":
        data = gzip.decompress(data)
    return data.decode("latin-1")


def main(argv: list[str] | None = None) -> int:
    """Command line: [-f] <in.fasta> [<out.prefix>]."""
    args = sys.argv[1:] if argv is None else list(argv)
    usage = "Usage: fa2pac [-f] <in.fasta> [<out.prefix>]"
    try:
        opts, rest = getopt.gnu_getopt(args, "f")
    except getopt.GetoptError as exc:
        print(f"{exc}\n{usage}", file=sys.stderr)
        return 1
    if not rest:
        print(usage, file=sys.stderr)
        return 1
    forward_only = any(opt == "-f" for opt, _ in opts)
    text = _read_input(rest[0])
    prefix = rest[1] if len(rest) > 1 else rest[0]
    fasta_to_pac(read_fasta(io.StringIO(text)), prefix, forward_only)
    return 0


if __name__ == "__main__":
    sys.exit(main())