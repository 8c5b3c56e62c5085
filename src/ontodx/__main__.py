"""
Command-line interface for the ontodx toolkit.
Loads an OWL knowledge base, builds patients from a workbook or from
command-line findings, and prints each patient's ranked diagnostic index.
"""

import click
import json
import logging
import os
import pathlib
import requests
import sys
import typing

from pydantic import ValidationError
from stairval.notepad import Notepad, create_notepad
from urllib.parse import urlparse

from .engine import DiagnosticIndexEngine
from .loader import load_sheets_as_tables
from .mapper import DefaultMapper, DiagnosisRow, FindingCategory, FindingRow
from .patient import Patient
from .resource import Disease
from .store import KnowledgeBaseError, RdfKnowledgeStore, UnknownTermError

KB_PATH = os.getenv("ONTODX_KB_PATH", "data/kb.ttl")
KB_URL = os.getenv("ONTODX_KB_URL")

CLI_PATIENT_ID = "cli"


@click.group()
def main():
    """ontodx: ontology-driven diagnostic index for patient findings."""
    pass


@main.command(name="download")
@click.option(
    "-u",
    "--url",
    default=None,
    type=str,
    help="knowledge-base file URL (default: $ONTODX_KB_URL)",
)
@click.option(
    "-d",
    "--data-path",
    "data_dir",
    default="data",
    type=click.Path(file_okay=False),
    help="where to save the knowledge base (default: data)",
)
@click.option(
    "-o",
    "--output-name",
    default=None,
    type=str,
    help="file name to save as (default: last segment of the URL path)",
)
def download(url: typing.Optional[str], data_dir: str, output_name: typing.Optional[str]):
    """
    Download a knowledge-base (OWL/RDF) file into the data folder.
    """
    url = url or KB_URL
    if not url:
        click.echo("Error: no knowledge-base URL given (use --url or ONTODX_KB_URL)", err=True)
        sys.exit(1)
    datadir = pathlib.Path(data_dir)
    datadir.mkdir(parents=True, exist_ok=True)
    name = output_name or pathlib.PurePosixPath(urlparse(url).path).name or "kb.owl"

    click.echo(f"Downloading knowledge base from {url} …")
    resp = requests.get(url, timeout=60)
    resp.raise_for_status()

    out = datadir / name
    with open(out, "wb") as f:
        f.write(resp.content)

    click.echo(f"Saved knowledge base to {out}")


@main.command(name="diagnose")
@click.option(
    "-k",
    "--knowledge-base",
    "kb_path",
    type=click.Path(dir_okay=False),
    help="path to the OWL/RDF knowledge base (default: $ONTODX_KB_PATH or data/kb.ttl)",
)
@click.option("--rdf-format", default=None, help="rdflib parser name (default: guessed from extension)")
@click.option("--namespace", default=None, help="namespace used to resolve bare local names")
@click.option(
    "-p",
    "--patients",
    "workbook_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Excel workbook with 'findings' and/or 'diagnoses' sheets",
)
@click.option("-s", "--symptom", "symptoms", multiple=True, help="observed symptom (repeatable)")
@click.option("-b", "--body-sign", "body_signs", multiple=True, help="observed body sign (repeatable)")
@click.option("-g", "--pathogeny", "pathogeny", multiple=True, help="observed pathogenic factor (repeatable)")
@click.option("-m", "--history", "history", multiple=True, help="prior disease (repeatable)")
@click.option("-d", "--diagnosed", "diagnosed", multiple=True, help="disease already diagnosed (repeatable)")
@click.option("--top", type=click.IntRange(min=1), default=None, help="show only the N highest indexes per patient")
@click.option("-r", "--raw", is_flag=True, help="emit JSON instead of a table")
@click.option("--verbose-logging", is_flag=True, help="Also emit debug logs to stderr")
@click.option(
    "--log-file-path",
    type=click.Path(dir_okay=False, writable=True),
    help="Append timestamped logs to this file",
)
def diagnose(
    kb_path: typing.Optional[str],
    rdf_format: typing.Optional[str],
    namespace: typing.Optional[str],
    workbook_path: typing.Optional[str],
    symptoms: tuple[str, ...],
    body_signs: tuple[str, ...],
    pathogeny: tuple[str, ...],
    history: tuple[str, ...],
    diagnosed: tuple[str, ...],
    top: typing.Optional[int],
    raw: bool,
    verbose_logging: bool,
    log_file_path: typing.Optional[str],
):
    """
    Compute the diagnostic index of every candidate disease for each patient:
      - patients come from a workbook (-p) and/or from repeatable finding options
      - candidates are known diagnoses plus diseases reachable from findings
      - output is a PATIENT / DISEASE / INDEX table, or JSON with -r
    """
    _configure_logging(verbose_logging, log_file_path)

    # 1) Load the knowledge base
    kb_file = _locate_kb_file(kb_path)
    store = _load_store(str(kb_file), rdf_format, namespace)
    mapper = DefaultMapper(store)

    # 2) Build patients
    notepad = create_notepad("patients")
    patients: list[Patient] = []
    if workbook_path:
        logging.info(f"Beginning parse of '{workbook_path}'")
        tables = load_sheets_as_tables(workbook_path)
        logging.debug(f"Loaded sheets: {list(tables.keys())}")
        patients.extend(mapper.apply_mapping(tables, notepad))
    if any((symptoms, body_signs, pathogeny, history, diagnosed)):
        patients.extend(_patients_from_options(mapper, symptoms, body_signs, pathogeny, history, diagnosed, notepad))

    # 3) Report any errors or warnings
    _report_issues(notepad, err=raw)
    if notepad.has_errors(include_subsections=True):
        sys.exit(1)
    if not patients:
        click.echo("Error: no patient input given (use --patients or finding options)", err=True)
        sys.exit(1)

    # 4) Score
    engine = DiagnosticIndexEngine(store)
    results: list[dict[str, typing.Any]] = []
    failed = False
    for patient in patients:
        try:
            engine.compute_index(patient)
        except UnknownTermError as e:
            click.echo(f"Error: patient {patient.patient_id!r}: {e}", err=True)
            failed = True
            continue
        for disease, index in patient.ranked_diseases()[:top]:
            results.append({"patient": patient.patient_id, "disease": disease.iri, "index": index})

    # 5) Output
    if raw:
        click.echo(json.dumps(results, indent=2))
    else:
        _echo_table(results)
    if failed:
        sys.exit(1)


def _configure_logging(verbose_logging: bool, log_file_path: typing.Optional[str]) -> None:
    handlers: list[logging.Handler] = []
    if log_file_path:
        handlers.append(logging.FileHandler(log_file_path, mode="a", encoding="utf-8"))
    if verbose_logging:
        handlers.append(logging.StreamHandler(sys.stderr))
    if handlers:
        logging.basicConfig(
            level=logging.DEBUG if verbose_logging else logging.INFO,
            format="%(asctime)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            handlers=handlers,
        )


def _locate_kb_file(kb_path: typing.Optional[str]) -> pathlib.Path:
    # pick the knowledge base: either given or default
    kb_file = pathlib.Path(kb_path or KB_PATH)
    if not kb_file.is_file():
        click.echo(f"Error: knowledge base not found at {kb_file}", err=True)
        sys.exit(1)
    return kb_file


def _load_store(kb_file: str, rdf_format: typing.Optional[str], namespace: typing.Optional[str]) -> RdfKnowledgeStore:
    try:
        return RdfKnowledgeStore.from_file(kb_file, rdf_format=rdf_format, namespace=namespace)
    except KnowledgeBaseError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _patients_from_options(
    mapper: DefaultMapper,
    symptoms: tuple[str, ...],
    body_signs: tuple[str, ...],
    pathogeny: tuple[str, ...],
    history: tuple[str, ...],
    diagnosed: tuple[str, ...],
    notepad: Notepad,
) -> list[Patient]:
    finding_rows: list[FindingRow] = []
    diagnosis_rows: list[DiagnosisRow] = []
    options = (
        (FindingCategory.SYMPTOM, symptoms),
        (FindingCategory.BODY_SIGN, body_signs),
        (FindingCategory.PATHOGENY, pathogeny),
        (FindingCategory.HISTORY, history),
    )
    try:
        for category, iris in options:
            finding_rows.extend(FindingRow(patient_id=CLI_PATIENT_ID, category=category, iri=iri) for iri in iris)
        diagnosis_rows.extend(DiagnosisRow(patient_id=CLI_PATIENT_ID, disease_iri=iri) for iri in diagnosed)
    except ValidationError as e:
        notepad.add_error(f"Finding options: {e}")
        return []
    return mapper.build_patients(finding_rows, diagnosis_rows, notepad)


def _report_issues(notepad: Notepad, err: bool = False):
    # if there were errors, show them
    if notepad.has_errors(include_subsections=True):
        click.echo("Errors found in mapping:", err=err)
        for issue in notepad.errors():
            click.echo(f"- {issue.message}", err=err)
    # show any warnings but keep going
    if notepad.has_warnings(include_subsections=True):
        click.echo("Warnings found in mapping:", err=err)
        for issue in notepad.warnings():
            click.echo(f"- {issue.message}", err=err)


def _echo_table(results: list[dict[str, typing.Any]]) -> None:
    click.echo(f"{'PATIENT':<15}  {'DISEASE':<40}  INDEX")
    for row in results:
        label = Disease(row["disease"]).local_name
        click.echo(f"{row['patient']:<15}  {label:<40}  {row['index']:.2f}")


if __name__ == "__main__":
    main()
