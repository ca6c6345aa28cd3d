#!/usr/bin/env python3

from __future__ import annotations

import os
import pickle
import warnings
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from nichecooc._defaults import SAMPLE_ID_COLUMNS, METADATA_FIELDS
from nichecooc.utils import as_matrix


class AbundanceTable:
    """
    Container for a taxa × samples abundance table.

    Attributes:
        taxa (List[str]): Taxon identifiers, one per row of counts.
        samples (List[str]): Sample identifiers, one per column of counts.
        counts (np.ndarray): Read-only non-negative counts (taxa × samples).
    """
    def __init__(
        self,
        taxa: Sequence[str],
        samples: Sequence[str],
        counts,
    ):
        taxa = [str(t) for t in taxa]
        samples = [str(s) for s in samples]
        matrix = as_matrix(counts, name="counts")

        if matrix.shape[0] != len(taxa):
            raise ValueError(
                f"counts has {matrix.shape[0]} rows but {len(taxa)} taxa were given"
            )
        if len(taxa) and matrix.shape[1] != len(samples):
            raise ValueError(
                f"counts rows have {matrix.shape[1]} entries but {len(samples)} samples were given"
            )
        if not len(taxa):
            matrix = np.empty((0, len(samples)), dtype=float)
        if len(set(taxa)) != len(taxa):
            raise ValueError("taxa identifiers must be unique")
        if len(set(samples)) != len(samples):
            raise ValueError("sample identifiers must be unique")
        if not np.all(np.isfinite(matrix)):
            raise ValueError("counts must be finite")
        if np.any(matrix < 0):
            raise ValueError("counts must be non-negative")

        matrix.setflags(write=False)
        self._taxa = taxa
        self._samples = samples
        self._counts = matrix

    @property
    def taxa(self) -> List[str]:
        return list(self._taxa)

    @property
    def samples(self) -> List[str]:
        return list(self._samples)

    @property
    def counts(self) -> np.ndarray:
        return self._counts

    @property
    def n_taxa(self) -> int:
        return len(self._taxa)

    @property
    def n_samples(self) -> int:
        return len(self._samples)

    def __repr__(self):
        return (
            f"<AbundanceTable: {self.n_taxa} taxa, "
            f"{self.n_samples} samples>"
        )

    def __eq__(self, other):
        if not isinstance(other, AbundanceTable):
            return NotImplemented
        return (
            self._taxa == other._taxa
            and self._samples == other._samples
            and np.array_equal(self._counts, other._counts)
        )

    def resampled(self, indices) -> 'AbundanceTable':
        """
        Return a new AbundanceTable built from the given sample columns.

        Indices may repeat (bootstrap resampling); repeated samples get the
        first free ``#n`` suffix not already used by any sample of the table
        so identifiers stay unique.
        """
        idxs = np.asarray(indices, dtype=int)
        taken = set(self._samples)
        used = set()
        suffix: Dict[str, int] = {}
        names = []
        for i in idxs:
            s = self._samples[i]
            name = s
            while name in used:
                suffix[s] = suffix.get(s, 0) + 1
                name = f"{s}#{suffix[s]}"
                if name in taken:
                    name = s
            used.add(name)
            names.append(name)
        return AbundanceTable(self._taxa, names, self._counts[:, idxs])

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self._counts, index=pd.Index(self._taxa, name="taxon"), columns=self._samples)

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> 'AbundanceTable':
        """Build a table from a DataFrame with taxa as index and samples as columns."""
        values = df.apply(pd.to_numeric, errors="coerce")
        if values.isna().any().any():
            bad = values.columns[values.isna().any()].tolist()
            raise ValueError(f"Non-numeric counts in sample column(s): {', '.join(map(str, bad))}")
        return cls(df.index.tolist(), df.columns.tolist(), values.to_numpy(dtype=float))


@dataclass(frozen=True)
class SampleMetadata:
    """Per-sample annotation used to label niches with habitats."""
    sample_id: str
    habitat: Optional[str] = None
    host: Optional[str] = None
    location: Optional[str] = None
    extra: Dict[str, object] = field(default_factory=dict)


def _as_metadata(record) -> SampleMetadata:
    if isinstance(record, SampleMetadata):
        return record
    if not isinstance(record, dict):
        raise ValueError(f"Cannot interpret metadata record {record!r}")
    id_key = next((k for k in SAMPLE_ID_COLUMNS if k in record), None)
    if id_key is None:
        raise ValueError(f"Metadata record {record!r} has no sample identifier")
    fields = {k: record.get(k) for k in METADATA_FIELDS}
    extra = {k: v for k, v in record.items() if k != id_key and k not in METADATA_FIELDS}
    return SampleMetadata(sample_id=str(record[id_key]), extra=extra, **fields)


def _read_delimited(filepath: str) -> pd.DataFrame:
    sep = "," if filepath.endswith((".csv", ".csv.gz")) else "\t"
    return pd.read_csv(filepath, sep=sep)


def load_abundance_table(table) -> AbundanceTable:
    """
    Load an AbundanceTable from an object or a file.

    Accepts an AbundanceTable (returned as is), a pickled AbundanceTable
    (``.pkl``) or a TSV/CSV with taxa in the first column and one column
    per sample.
    """
    if isinstance(table, AbundanceTable):
        return table

    filepath = str(table)
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"Abundance table '{filepath}' not found.")

    if filepath.endswith(".pkl"):
        with open(filepath, "rb") as f:
            obj = pickle.load(f)
        if not isinstance(obj, AbundanceTable):
            raise ValueError(f"{filepath} does not contain an AbundanceTable object")
        return obj

    df = _read_delimited(filepath)
    if df.shape[1] < 1:
        raise ValueError(f"{filepath} has no columns")
    df = df.set_index(df.columns[0])
    return AbundanceTable.from_frame(df)


def load_sample_metadata(metadata, samples: Optional[Sequence[str]] = None) -> List[SampleMetadata]:
    """
    Load per-sample metadata records from a list or a TSV/CSV file.

    The sample column is the first of SAMPLE_ID_COLUMNS present. ``habitat``,
    ``host`` and ``location`` are picked up when present; every other
    column ends up in ``extra``. If ``samples`` is given, records for
    samples outside it are dropped with a warning.
    """
    if metadata is None:
        return []

    if isinstance(metadata, (list, tuple)):
        records = [_as_metadata(m) for m in metadata]
    else:
        filepath = str(metadata)
        if not os.path.exists(filepath):
            raise FileNotFoundError(f"Metadata file '{filepath}' not found.")
        df = _read_delimited(filepath)
        id_col = next((c for c in SAMPLE_ID_COLUMNS if c in df.columns), None)
        if id_col is None:
            raise ValueError(
                f"{filepath} needs a sample column named one of: {', '.join(SAMPLE_ID_COLUMNS)}"
            )
        for col in METADATA_FIELDS:
            if col in df.columns:
                df[col] = df[col].astype("string")
        df = df.astype(object).where(df.notna(), None)
        records = [_as_metadata(row) for row in df.to_dict(orient="records")]

    if samples is not None:
        known = set(samples)
        missing = [m.sample_id for m in records if m.sample_id not in known]
        if missing:
            warnings.warn(
                f"{len(missing)} metadata record(s) refer to samples absent from the table "
                f"(e.g. {missing[0]}); they are ignored.", UserWarning
            )
        records = [m for m in records if m.sample_id in known]

    return records
