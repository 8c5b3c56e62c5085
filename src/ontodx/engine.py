"""
Diagnostic index engine.

For every candidate disease D of a patient the index is

    (Ws*S + Wb*B + Wp*P + Wm*M) / (Ws + Wb + Wp + Wm)

where S, B, P, M are the cosine similarities between D's related symptoms,
body signs, pathogenic factors and triggered diseases and the patient's
observed symptoms, body signs, pathogenic factors and medical history, and
each weight is the number of findings the patient reports in that category.
The result is rounded half-up to two decimals. A patient with no findings
scores 0.0 everywhere.

Candidates are the patient's existing diagnoses plus every disease reachable
from one of the patient's findings (see CandidateDiscoverer). Findings that
are unknown to the knowledge base are skipped.
"""

import logging
import typing

from decimal import ROUND_HALF_UP, Decimal

from .candidates import CandidateDiscoverer
from .patient import Patient
from .relations import RelationExpander
from .resource import Disease, Resource
from .similarity import similarity
from .store import KnowledgeStore, UnknownTermError


class MissingPatientError(ValueError):
    """Raised when the engine is asked to score without a patient."""


def round_index(value: float, places: int = 2) -> float:
    """Round half-up on the exact value of the float (built-in round() rounds half-to-even)."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


class DiagnosticIndexEngine:
    def __init__(
        self,
        store: KnowledgeStore,
        expander: typing.Optional[RelationExpander] = None,
        discoverer: typing.Optional[CandidateDiscoverer] = None,
    ):
        self._expander = expander or RelationExpander(store)
        self._discoverer = discoverer or CandidateDiscoverer(store)

    def compute_index(self, patient: Patient) -> Patient:
        """
        Score every candidate disease and write the results into
        `patient.disease_index`. Existing entries are re-scored, never removed.
        Nothing is written unless every candidate scores.
        Returns the same patient.
        """
        if patient is None:
            raise MissingPatientError("compute_index() requires a patient")

        candidates = self.candidate_diseases(patient)
        scores = {
            disease: self.score(patient, disease)
            for disease in sorted(candidates, key=lambda d: d.iri)
        }
        patient.disease_index.update(scores)
        return patient

    def candidate_diseases(self, patient: Patient) -> set[Disease]:
        candidates = set(patient.disease_index)
        for finding in patient.finding_iris():
            try:
                candidates |= self._discoverer.candidates_for(finding)
            except UnknownTermError:
                logging.info(f"Skipping finding {finding!r}: not in knowledge base")
                continue
        return candidates

    def score(self, patient: Patient, disease: Disease) -> float:
        """Diagnostic index of one disease for the patient."""
        components = (
            (len(patient.symptoms), similarity(_iris(self._expander.related_symptoms(disease)), _iris(patient.symptoms))),
            (len(patient.body_signs), similarity(_iris(self._expander.related_body_signs(disease)), _iris(patient.body_signs))),
            (len(patient.pathogeny), similarity(_iris(self._expander.related_pathogeny(disease)), _iris(patient.pathogeny))),
            (len(patient.medical_history), similarity(_iris(self._expander.related_diseases(disease)), _iris(patient.medical_history))),
        )
        total_weight = sum(weight for weight, _ in components)
        if total_weight == 0:
            return 0.0
        raw = sum(weight * sim for weight, sim in components) / total_weight
        logging.debug(
            f"{disease.local_name}: S/B/P/M="
            + "/".join(f"{sim:.4f}" for _, sim in components)
            + f" raw={raw:.6f}"
        )
        return round_index(raw)


def _iris(resources: typing.Iterable[Resource]) -> list[str]:
    return [r.iri for r in resources]
