"""Reference packing, alignment-region bookkeeping and SAM/BAM handling for short-read mapping."""

__version__ = "0.1.0"