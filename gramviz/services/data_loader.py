from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import pandas as pd

from ..core.errors import SpecificationError

LOGGER = logging.getLogger(__name__)


@dataclass
class LoadedTable:
    name: str
    dataframe: pd.DataFrame
    header_row: int


class TableLoader:
    """Load CSV, JSON and Excel sources while inferring headers and basic types."""

    def __init__(self, max_sample_rows: int = 200) -> None:
        self.max_sample_rows = max_sample_rows

    def load(self, path: Union[str, Path], sheet: Optional[str] = None) -> LoadedTable:
        path = Path(path)
        suffix = path.suffix.lower()
        if suffix in (".xlsx", ".xlsm", ".xls"):
            tables = self.load_workbook(path.read_bytes(), [sheet] if sheet else None)
            if not tables:
                raise SpecificationError(f"{path.name}: no non-empty sheet{f' named {sheet!r}' if sheet else ''}")
            return next(iter(tables.values()))
        if suffix == ".csv":
            frame = pd.read_csv(path)
        elif suffix == ".json":
            frame = pd.read_json(path)
        else:
            raise SpecificationError(f"unsupported data file type '{suffix}' (expected .csv, .json or Excel)")
        LOGGER.info("loaded %s: %d rows x %d columns", path.name, len(frame), frame.shape[1])
        return LoadedTable(name=path.stem, dataframe=self._coerce_types(frame), header_row=0)

    def load_workbook(self, data: bytes, sheet_names: Optional[Iterable[str]] = None) -> Dict[str, LoadedTable]:
        raw = pd.read_excel(BytesIO(data), sheet_name=None, header=None, dtype=object, engine="openpyxl")
        tables: Dict[str, LoadedTable] = {}

        selected = list(raw.items())
        if sheet_names:
            wanted = {name.lower() for name in sheet_names}
            selected = [(name, frame) for name, frame in selected if name.lower() in wanted]

        for sheet_name, frame in selected:
            if frame.empty:
                continue
            header_row = self._detect_header_row(frame)
            tables[sheet_name] = LoadedTable(
                name=sheet_name, dataframe=self._build_dataframe(frame, header_row), header_row=header_row
            )
            LOGGER.info("sheet %s: header on row %d", sheet_name, header_row + 1)
        return tables

    def _detect_header_row(self, frame: pd.DataFrame) -> int:
        limit = min(len(frame), self.max_sample_rows)
        best_idx = 0
        best_score = float("-inf")
        for idx in range(limit):
            row = frame.iloc[idx]
            labels = sum(self._looks_like_header_value(v) for v in row)
            score = row.notna().sum() * 1.5 + labels * 2.5 + row.astype(str).nunique(dropna=True)
            if score > best_score:
                best_idx = idx
                best_score = score
        return best_idx

    def _build_dataframe(self, frame: pd.DataFrame, header_row: int) -> pd.DataFrame:
        header = frame.iloc[header_row].fillna("").astype(str).str.strip()
        data = frame.iloc[header_row + 1 :].copy()
        data.columns = self._dedupe_columns(header.tolist())
        data = data.dropna(axis=1, how="all").dropna(how="all").reset_index(drop=True)
        return self._coerce_types(data)

    def _coerce_types(self, df: pd.DataFrame) -> pd.DataFrame:
        for column in df.columns:
            series = df[column]
            if series.dropna().empty or pd.api.types.is_numeric_dtype(series):
                continue
            numeric = pd.to_numeric(series, errors="coerce")
            if numeric.notna().mean() > 0.7:
                df[column] = numeric
                continue
            if pd.api.types.is_datetime64_any_dtype(series):
                continue
            datetime = pd.to_datetime(series, errors="coerce", format="mixed")
            if datetime.notna().mean() > 0.7:
                df[column] = datetime
        return df

    def _looks_like_header_value(self, value: object) -> bool:
        return isinstance(value, str) and 0 < len(value.strip()) <= 32

    def _dedupe_columns(self, columns: List[str]) -> List[str]:
        seen: Dict[str, int] = {}
        result: List[str] = []
        for col in columns:
            base = col or "column"
            count = seen.get(base, 0)
            result.append(f"{base}_{count + 1}" if count else base)
            seen[base] = count + 1
        return result


def load_table(path: Union[str, Path], sheet: Optional[str] = None) -> pd.DataFrame:
    return TableLoader().load(path, sheet).dataframe
