"""
Workbook reading: one DataFrame per sheet, indexed by patient identifier.
"""

import logging

import pandas as pd

PATIENT_ID_INDEX = "patient_id"

# Header spellings → row-model fields
RENAME_MAP = {
    # findings
    "term": "iri",
    "uri": "iri",
    "type": "category",
    "kind": "category",
    # diagnoses
    "disease": "disease_iri",
    "disease_uri": "disease_iri",
    "prior_score": "score",
    "index": "score",
}


def normalize_header(header: pd.Index) -> pd.Index:
    """'Term (IRI)' → 'term', 'Prior Score' → 'prior_score', 'Disease:' → 'disease'."""
    return (
        header.astype(str)
        .str.strip()
        .str.replace(r"\s*\(.*?\)", "", regex=True)
        .str.replace(r"\s+", "_", regex=True)
        .str.replace(":", "", regex=False)
        .str.lower()
    )


def read_patient_sheet(excel: pd.ExcelFile, sheet_name: str) -> pd.DataFrame:
    """
    First row is the header, first column the patient identifier.
    Rows with no value at all (spacer rows between patients) are dropped.
    """
    df = pd.read_excel(excel, sheet_name=sheet_name, header=0, index_col=0)
    df.columns = normalize_header(df.columns)
    df = df.rename(columns={orig: RENAME_MAP[orig] for orig in df.columns if orig in RENAME_MAP})

    blank = df.isna().all(axis=1) & df.index.isna()
    if blank.any():
        logging.debug(f"Sheet {sheet_name!r}: dropping {int(blank.sum())} blank rows")
    df = df.loc[~blank]
    df.index.name = PATIENT_ID_INDEX
    return df


def load_sheets_as_tables(workbook_path: str) -> dict[str, pd.DataFrame]:
    excel = pd.ExcelFile(workbook_path, engine="openpyxl")
    return {sheet_name: read_patient_sheet(excel, sheet_name) for sheet_name in excel.sheet_names}
