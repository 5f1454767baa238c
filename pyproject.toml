[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "refalign"
version = "0.1.0"
description = "Reference sequence packing, alignment-region bookkeeping and SAM/BAM record handling for short-read mapping"
requires-python = ">=3.10"
dependencies = []
keywords = ["bioinformatics", "alignment", "fasta", "sam", "bam", "short-read"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Bio-Informatics",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
refalign-fa2pac = "refalign.bntseq:main"

[tool.hatch.build.targets.wheel]
packages = ["refalign"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
