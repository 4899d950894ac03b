"""Query input: FASTA parsing and sequence cleaning.

Cleaning happens here, on the caller side; the search core assumes it gets
sequences over the 20-letter alphabet.
"""

from __future__ import annotations

import io
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, TextIO


@dataclass(frozen=True)
class FastaRecord:
    """A FASTA record."""

    id: str
    sequence: str
    description: str = ""


def _parse_fasta_stream(handle: TextIO) -> Iterator[FastaRecord]:
    header: str | None = None
    seq_chunks: list[str] = []

    for raw in handle:
        line = raw.strip()
        if not line:
            continue

        if line.startswith(">"):
            if header is not None:
                yield _record(header, seq_chunks)
            header = line[1:]
            seq_chunks = []
        elif header is not None:
            seq_chunks.append(line)

    if header is not None:
        yield _record(header, seq_chunks)


def _record(header: str, chunks: list[str]) -> FastaRecord:
    parts = header.split(None, 1)
    pid = parts[0] if parts else ""
    desc = parts[1] if len(parts) > 1 else ""
    return FastaRecord(id=pid, sequence="".join(chunks).replace(" ", "").upper(), description=desc)


def read_fasta(path: str | Path) -> Iterator[FastaRecord]:
    """Stream FASTA records from a file, or from stdin when path is '-'."""
    if str(path) == "-":
        yield from _parse_fasta_stream(sys.stdin)
        return
    p = Path(path)
    with p.open("r", encoding="utf-8") as f:
        yield from _parse_fasta_stream(f)


def parse_fasta_text(text: str, default_id: str = "query") -> list[FastaRecord]:
    """Records from FASTA text; a bare sequence becomes a single record."""
    if text.lstrip().startswith(">"):
        return list(_parse_fasta_stream(io.StringIO(text)))
    seq = "".join(text.split()).upper()
    return [FastaRecord(id=default_id, sequence=seq)] if seq else []


MIN_QUERY_LENGTH = 10

_NON_AMINO = re.compile(r"[^ACDEFGHIKLMNPQRSTVWY]")


def clean_sequence(raw: str) -> str:
    """Upper-case and drop every symbol outside the 20 standard amino acids."""
    return _NON_AMINO.sub("", raw.upper())


def prepare_query(raw: str, min_length: int = MIN_QUERY_LENGTH) -> str:
    """Clean a user-supplied sequence and enforce the minimum query length."""
    seq = clean_sequence(raw)
    if not seq:
        raise ValueError("Sequence contains no valid amino acids")
    if len(seq) < min_length:
        raise ValueError(f"Sequence too short: {len(seq)} residues (minimum {min_length})")
    return seq
