"""
Patient domain model.

Defines the Patient aggregate: observed findings per category plus the
mutable disease -> diagnostic index mapping filled in by the engine.
"""

from dataclasses import dataclass, field

from .resource import BodySigns, Disease, Pathogeny, Resource, Symptom


@dataclass
class Patient:
    """
    Represents one patient's findings for a single diagnosis request.

    Attributes:
        patient_id: Identifier used when reporting results.
        symptoms: Observed symptoms.
        body_signs: Observed body signs.
        pathogeny: Observed pathogenic factors.
        medical_history: Prior diseases.
        disease_index: Disease -> diagnostic index. A value of None marks a
            known diagnosis whose index has not been computed yet.
    """

    patient_id: str = ""
    symptoms: set[Symptom] = field(default_factory=set)
    body_signs: set[BodySigns] = field(default_factory=set)
    pathogeny: set[Pathogeny] = field(default_factory=set)
    medical_history: set[Disease] = field(default_factory=set)
    disease_index: dict[Disease, float | None] = field(default_factory=dict)

    def finding_iris(self) -> list[str]:
        """
        Flatten every finding into one list of IRIs, category by category
        (symptoms, body signs, pathogeny, history).
        """
        iris: list[str] = []
        for findings in (self.symptoms, self.body_signs, self.pathogeny, self.medical_history):
            iris.extend(sorted(_iris(findings)))
        return iris

    def ranked_diseases(self) -> list[tuple[Disease, float]]:
        """Scored diseases, highest index first; ties broken by IRI."""
        scored = [(d, s) for d, s in self.disease_index.items() if s is not None]
        return sorted(scored, key=lambda item: (-item[1], item[0].iri))


def _iris(resources: set[Resource]) -> list[str]:
    return [r.iri for r in resources]
