# refalign

Pure-Python building blocks for short-read mapping against a reference
genome: packing the reference, bookkeeping of seed chains and alignment
regions, mapping-quality and read-pair logic, SAM line formatting and a
small BAM reader. It has no third-party dependencies.

## Modules

- `refalign.bntseq`: reference packing. `read_fasta` yields
  `(name, comment, sequence)` tuples from FASTA or FASTQ lines.
  `fasta_to_pac` packs sequences 2 bits per base into `<prefix>.pac` and
  writes the `<prefix>.ann` and `<prefix>.amb` files holding names,
  offsets and runs of ambiguous bases. `ReferenceSet.restore(prefix)` reads
  them back (and marks ALT sequences listed in an optional `<prefix>.alt`);
  its methods `depos`, `pos_to_rid`, `interval_to_rid`, `count_ambiguous`
  and `fetch_seq` answer coordinate questions. `get_seq` extracts a
  forward or reverse-complement stretch of packed sequence.
- `refalign.seqio`: `SequenceRecord`, `read_batch` (single or interleaved
  paired reads, batched by total length), `classify_pairs`,
  `trim_read_number`, `fill_scoring_matrix`, `format_sam_header`,
  `parse_read_group` (raises `ReadGroupError`), `insert_header` and
  `escape`.
- `refalign.options`: `MemOptions` (scoring, chaining and output
  parameters), the `MemFlag` switches, and the records `AlignmentRegion`,
  `Alignment` and `PairStats`.
- `refalign.chain`: `Seed`, `Chain`, `test_and_merge`, `chain_weight`,
  `filter_chains` and `format_chains`.
- `refalign.regions`: `sort_dedup` removes redundant and identical
  alignment regions; `infer_bandwidth` gives the band width needed for a
  global alignment.
- `refalign.primary`: `mark_primary_se` sorts hits and marks secondary
  ones, `approx_mapq_se` computes single-end mapping quality,
  `reorder_primary5` moves the 5'-most primary hit first, and `hash64`.
- `refalign.pairing`: `infer_direction`, `cal_sub` and
  `estimate_pair_stats`, which infers insert-size statistics for the four
  orientations (FF, FR, RF, RR).
- `refalign.pairhits`: `pair_hits` finds the best consistent pairing of the
  hits of two read ends; `raw_mapq`.
- `refalign.samout`: `format_sam` renders one SAM line for an alignment,
  with `format_cigar` and `reference_length` as helpers.
- `refalign.bamlite`: `open_bam`, `read_header`, `read_record` and
  `iter_records`, yielding `BamHeader` and `BamRecord` objects; malformed
  input raises `BamFormatError`. `BamFlag` and `CigarOp` name the flag bits
  and CIGAR operations.

## Installation

```
pip install .
```

## Packing a reference

```
refalign-fa2pac genome.fa genome
```

This writes `genome.pac`, `genome.ann` and `genome.amb`. Gzip-compressed
input is accepted, and `-` reads standard input. When the output prefix is
omitted the input path is used. By default the reverse complement is
appended to the packed sequence; pass `-f` to pack the forward strand only.

From Python:

```python
from refalign.bntseq import ReferenceSet, fasta_to_pac, read_fasta

with open("genome.fa") as fh:
    total = fasta_to_pac(read_fasta(fh), "genome", forward_only=False)

refs = ReferenceSet.restore("genome")
print(refs.pos_to_rid(1000))
```

Ambiguous bases (`N` and friends) are replaced in the packed sequence by
pseudo-random bases from a fixed-seed `Rand48` generator, so packing the
same FASTA twice gives identical output.

## Reading BAM records

```python
from refalign.bamlite import open_bam, read_header, iter_records

with open_bam("reads.bam") as stream:
    header = read_header(stream)
    for record in iter_records(stream):
        print(record.qname(), record.core.pos, record.cigar())
```

## What this package does not do

There is no aligner here. The package builds no suffix array or FM-index,
finds no seeds in a query, performs no Smith-Waterman or global alignment,
and generates no CIGAR strings or MD tags from sequence. Chains, alignment
regions and alignments must be supplied by the caller; the modules above
filter, rank, pair and format them. The only command is `refalign-fa2pac`.

## Running the tests

```
pip install .[test]
pytest
```