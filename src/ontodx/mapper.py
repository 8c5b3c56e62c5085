import abc
import numbers
import typing

import pandas as pd

from dataclasses import dataclass
from enum import Enum
from pydantic import BaseModel, Field, ValidationError, field_validator
from stairval.notepad import Notepad

from .patient import Patient
from .resource import BodySigns, Disease, Pathogeny, Symptom
from .store import KnowledgeStore

class FindingCategory(str, Enum):
    """Which Patient attribute a finding row feeds."""
    SYMPTOM = "symptom"
    BODY_SIGN = "body_sign"
    PATHOGENY = "pathogeny"
    HISTORY = "history"


# Map raw category spellings to FindingCategory
CATEGORY_ALIASES = {
    "symptom": FindingCategory.SYMPTOM,
    "symptoms": FindingCategory.SYMPTOM,
    "body_sign": FindingCategory.BODY_SIGN,
    "body_signs": FindingCategory.BODY_SIGN,
    "bodysign": FindingCategory.BODY_SIGN,
    "bodysigns": FindingCategory.BODY_SIGN,
    "sign": FindingCategory.BODY_SIGN,
    "signs": FindingCategory.BODY_SIGN,
    "pathogeny": FindingCategory.PATHOGENY,
    "pathogen": FindingCategory.PATHOGENY,
    "pathogens": FindingCategory.PATHOGENY,
    "cause": FindingCategory.PATHOGENY,
    "causes": FindingCategory.PATHOGENY,
    "history": FindingCategory.HISTORY,
    "medical_history": FindingCategory.HISTORY,
    "disease": FindingCategory.HISTORY,
}

_PATIENT_ATTRIBUTE = {
    FindingCategory.SYMPTOM: ("symptoms", Symptom),
    FindingCategory.BODY_SIGN: ("body_signs", BodySigns),
    FindingCategory.PATHOGENY: ("pathogeny", Pathogeny),
    FindingCategory.HISTORY: ("medical_history", Disease),
}

FINDINGS_KEY_COLUMNS = {"category", "iri"}
DIAGNOSES_KEY_COLUMNS = {"disease_iri"}

KNOWN_SHEET_ALIASES: dict[str, set[str]] = {"findings": {"findings", "finding", "observations"},
                                            "diagnoses": {"diagnoses", "diagnosis", "diseases"}}


def _required_text(value: typing.Any) -> str:
    if value is None or pd.isna(value) or not str(value).strip():
        raise ValueError("value is required")
    return str(value).strip()


class FindingRow(BaseModel):
    patient_id: str
    category: FindingCategory
    iri: str

    @field_validator("patient_id", "iri", mode="before")
    @classmethod
    def _strip_text(cls, value: typing.Any) -> str:
        return _required_text(value)

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, value: typing.Any) -> FindingCategory:
        if isinstance(value, FindingCategory):
            return value
        key = _required_text(value).lower().replace(" ", "_").replace("-", "_")
        try:
            return CATEGORY_ALIASES[key]
        except KeyError:
            raise ValueError(f"unknown finding category {value!r}")


class DiagnosisRow(BaseModel):
    patient_id: str
    disease_iri: str
    score: typing.Optional[float] = Field(default=None, ge=0.0, le=1.0)

    @field_validator("patient_id", "disease_iri", mode="before")
    @classmethod
    def _strip_text(cls, value: typing.Any) -> str:
        return _required_text(value)

    @field_validator("score", mode="before")
    @classmethod
    def _blank_score_is_none(cls, value: typing.Any) -> typing.Any:
        # blank cell → diagnosed, index not known yet
        if value is None:
            return None
        if isinstance(value, str):
            return value.strip() or None
        if isinstance(value, numbers.Real):
            # numpy scalars from pandas → plain float
            return None if pd.isna(value) else float(value)
        return value


@dataclass
class TypedTables:
    """
    Explicit, typed access to workbook sheets.
    Any field can be `None`, meaning that the sheet was not provided.
    """
    findings: pd.DataFrame | None
    diagnoses: pd.DataFrame | None


def _format_validation_error(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in detail['loc'])}: {detail['msg']}"
        for detail in error.errors()
    )


class TableMapper(metaclass=abc.ABCMeta):
    @abc.abstractmethod
    def apply_mapping(
            self, tables: dict[str, pd.DataFrame], notepad: Notepad
    ) -> typing.Sequence[Patient]:
        # return fully-assembled Patient objects, one per patient identifier.
        raise NotImplementedError


class DefaultMapper(TableMapper):
    def __init__(self, store: KnowledgeStore):
        self._store = store

    def apply_mapping(
            self, tables: dict[str, pd.DataFrame], notepad: Notepad
    ) -> list[Patient]:
        """
        Process:
        1) choose/validate input tables
        2) map rows to validated row models
        3) resolve identifiers against the knowledge base
        4) group rows into one Patient per patient identifier
        """
        typed_tables = self._choose_named_tables(tables, notepad)
        finding_rows = self._map_findings_table(typed_tables.findings, notepad)
        diagnosis_rows = self._map_diagnoses_table(typed_tables.diagnoses, notepad)
        return self.build_patients(finding_rows, diagnosis_rows, notepad)

    def _choose_named_tables(self, tables: dict[str, pd.DataFrame], notepad: Notepad) -> TypedTables:
        """
        Prefer explicit sheet names (plus common aliases).
        """

        def by_alias(kind: str) -> pd.DataFrame | None:
            aliases = KNOWN_SHEET_ALIASES[kind]
            for sheet_name, df in tables.items():
                if sheet_name.strip().casefold() in aliases:
                    return df
            return None

        selected = TypedTables(
            findings=by_alias("findings"),
            diagnoses=by_alias("diagnoses"),
        )

        if selected.findings is None and selected.diagnoses is None:
            notepad.add_error("Missing required sheet: either 'findings' or 'diagnoses'.")

        return selected

    @staticmethod
    def _prepare_sheet_for_patient(df: pd.DataFrame, patient_id_column: str) -> pd.DataFrame:
        """Bring the index into a named patient identifier column."""
        working = df.reset_index()
        original = working.columns[0]
        return working.rename(columns={original: patient_id_column})

    def _map_findings_table(self, df: pd.DataFrame | None, notepad: Notepad) -> list[FindingRow]:
        if df is None:
            return []
        working = self._prepare_sheet_for_patient(df, "patient_id")
        missing = FINDINGS_KEY_COLUMNS - set(working.columns)
        if missing:
            notepad.add_error(f"Sheet 'findings': missing required columns: {sorted(missing)}")
            return []

        records: list[FindingRow] = []
        for index, row in working.iterrows():
            try:
                records.append(FindingRow(
                    patient_id=row["patient_id"],
                    category=row["category"],
                    iri=row["iri"],
                ))
            except ValidationError as e:
                notepad.add_error(f"Sheet 'findings', row {index}: {_format_validation_error(e)}")
        return records

    def _map_diagnoses_table(self, df: pd.DataFrame | None, notepad: Notepad) -> list[DiagnosisRow]:
        if df is None:
            return []
        working = self._prepare_sheet_for_patient(df, "patient_id")
        missing = DIAGNOSES_KEY_COLUMNS - set(working.columns)
        if missing:
            notepad.add_error(f"Sheet 'diagnoses': missing required columns: {sorted(missing)}")
            return []

        records: list[DiagnosisRow] = []
        for index, row in working.iterrows():
            try:
                records.append(DiagnosisRow(
                    patient_id=row["patient_id"],
                    disease_iri=row["disease_iri"],
                    score=row.get("score"),
                ))
            except ValidationError as e:
                notepad.add_error(f"Sheet 'diagnoses', row {index}: {_format_validation_error(e)}")
        return records

    def _resolve(self, identifier: str, sheet_name: str, notepad: Notepad) -> str:
        """Expand local names; flag identifiers the knowledge base does not know."""
        iri = self._store.resolve(identifier)
        if not self._store.has_class(iri):
            notepad.add_warning(f"Sheet {sheet_name!r}: {identifier!r} not found in knowledge base")
        return iri

    def build_patients(
            self, finding_rows: list[FindingRow], diagnosis_rows: list[DiagnosisRow], notepad: Notepad
    ) -> list[Patient]:
        patients: dict[str, Patient] = {}

        def patient_for(patient_id: str) -> Patient:
            if patient_id not in patients:
                patients[patient_id] = Patient(patient_id=patient_id)
            return patients[patient_id]

        for row in finding_rows:
            attribute, wrap = _PATIENT_ATTRIBUTE[row.category]
            try:
                finding = wrap(self._resolve(row.iri, "findings", notepad))
            except ValueError as e:
                notepad.add_error(f"Sheet 'findings', patient {row.patient_id!r}: {e}")
                continue
            getattr(patient_for(row.patient_id), attribute).add(finding)

        for row in diagnosis_rows:
            try:
                disease = Disease(self._resolve(row.disease_iri, "diagnoses", notepad))
            except ValueError as e:
                notepad.add_error(f"Sheet 'diagnoses', patient {row.patient_id!r}: {e}")
                continue
            patient_for(row.patient_id).disease_index[disease] = row.score

        return list(patients.values())
