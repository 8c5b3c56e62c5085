"""
Tests for DiagnosticIndexEngine against the knowledge base in tests/data/kb.ttl.

Reference sets used below:
- Influenza: symptoms {Fever, HighFever, Cough, DryCough}, pathogeny {InfluenzaVirus}, triggers {Pneumonia}
- Pneumonia: symptoms {Fever, HighFever, ChestPain}, pathogeny {Bacteria, Streptococcus}
- Bronchitis: symptoms {Cough, DryCough}
"""

import logging
from decimal import Decimal

import pytest

from ontodx.engine import DiagnosticIndexEngine, MissingPatientError, round_index
from ontodx.patient import Patient
from ontodx.resource import BodySigns, Disease, Pathogeny, Symptom
from ontodx.store import RdfKnowledgeStore, UnknownTermError

KB = "http://purl.org/ontodx/kb#"


def scores(patient: Patient) -> dict[str, float]:
    return {d.local_name: s for d, s in patient.disease_index.items()}


class TestDiagnosticIndexEngine:
    @pytest.fixture(scope="class")
    def engine(self, store: RdfKnowledgeStore) -> DiagnosticIndexEngine:
        return DiagnosticIndexEngine(store)

    def test_missing_patient_raises(self, engine: DiagnosticIndexEngine):
        with pytest.raises(MissingPatientError):
            engine.compute_index(None)

    def test_returns_the_same_patient(self, engine: DiagnosticIndexEngine):
        patient = Patient(symptoms={Symptom(KB + "Cough")})
        assert engine.compute_index(patient) is patient

    def test_no_findings_scores_only_existing_diagnoses_as_zero(self, engine: DiagnosticIndexEngine):
        patient = Patient(disease_index={Disease(KB + "Influenza"): 0.4, Disease(KB + "Pneumonia"): None})
        engine.compute_index(patient)
        assert scores(patient) == {"Influenza": 0.0, "Pneumonia": 0.0}

    def test_existing_diagnosis_plus_symptom(self, engine: DiagnosticIndexEngine):
        """
        Diagnosed with Pneumonia, observes Cough only.
        Cough leads to Influenza and Bronchitis; Pneumonia is kept and re-scored.
        """
        patient = Patient(
            symptoms={Symptom(KB + "Cough")},
            disease_index={Disease(KB + "Pneumonia"): None},
        )
        engine.compute_index(patient)
        assert scores(patient) == {
            "Pneumonia": 0.0,  # no symptom overlap
            "Influenza": 0.5,  # 1 / (2 * 1)
            "Bronchitis": 0.71,  # 1 / sqrt(2)
        }

    def test_weights_follow_category_counts(self, engine: DiagnosticIndexEngine):
        """
        Ws=2, Wb=1, Wp=1, Wm=0.
        Pneumonia: (2 * 2/sqrt(6) + 1 * 0 + 1 * 1/sqrt(2)) / 4 = 0.585... -> 0.59
        Influenza: (2 * 1/(2*sqrt(2))) / 4 = 0.176... -> 0.18
        """
        patient = Patient(
            symptoms={Symptom(KB + "Fever"), Symptom(KB + "ChestPain")},
            body_signs={BodySigns(KB + "Rales")},
            pathogeny={Pathogeny(KB + "Streptococcus")},
        )
        engine.compute_index(patient)
        assert scores(patient) == {"Pneumonia": 0.59, "Influenza": 0.18}

    def test_medical_history_component(self, engine: DiagnosticIndexEngine):
        """Influenza triggers Pneumonia; a Pneumonia history fully matches Influenza's M component."""
        patient = Patient(
            medical_history={Disease(KB + "Pneumonia")},
            disease_index={Disease(KB + "Influenza"): None},
        )
        engine.compute_index(patient)
        assert scores(patient) == {"Influenza": 1.0}

    def test_history_finding_discovers_triggered_disease(self, engine: DiagnosticIndexEngine):
        patient = Patient(medical_history={Disease(KB + "Influenza")})
        engine.compute_index(patient)
        # Pneumonia triggers nothing, so M = 0
        assert scores(patient) == {"Pneumonia": 0.0}

    def test_unknown_finding_is_skipped(self, engine: DiagnosticIndexEngine, caplog):
        """
        The unknown term still counts towards Ws and the symptom vector,
        but contributes no candidates.
        Influenza: 1 / (2 * sqrt(2)) = 0.354 -> 0.35; Bronchitis: 1 / 2 = 0.5
        """
        patient = Patient(symptoms={Symptom(KB + "Cough"), Symptom(KB + "flu_cough")})
        with caplog.at_level(logging.INFO):
            engine.compute_index(patient)
        assert scores(patient) == {"Influenza": 0.35, "Bronchitis": 0.5}
        assert "flu_cough" in caplog.text

    def test_only_unknown_findings_yield_no_candidates(self, engine: DiagnosticIndexEngine):
        patient = Patient(symptoms={Symptom(KB + "NotAThing")})
        engine.compute_index(patient)
        assert patient.disease_index == {}

    def test_body_sign_component_is_always_zero(self, engine: DiagnosticIndexEngine):
        patient = Patient(body_signs={BodySigns(KB + "Rales")})
        engine.compute_index(patient)
        assert scores(patient) == {"Pneumonia": 0.0}

    def test_unknown_existing_diagnosis_propagates(self, engine: DiagnosticIndexEngine):
        patient = Patient(
            symptoms={Symptom(KB + "Cough")},
            disease_index={Disease(KB + "Ghost"): 0.3},
        )
        with pytest.raises(UnknownTermError):
            engine.compute_index(patient)
        assert patient.disease_index == {Disease(KB + "Ghost"): 0.3}

    def test_failed_compute_leaves_index_unchanged(self, engine: DiagnosticIndexEngine):
        # Zzz sorts after Bronchitis and Influenza, which would otherwise be written first
        patient = Patient(
            symptoms={Symptom(KB + "Cough")},
            disease_index={Disease(KB + "Zzz"): 0.3},
        )
        with pytest.raises(UnknownTermError):
            engine.compute_index(patient)
        assert patient.disease_index == {Disease(KB + "Zzz"): 0.3}

    def test_keys_are_never_removed_and_scores_are_bounded(self, engine: DiagnosticIndexEngine):
        existing = {Disease(KB + "Bronchitis"): 0.9, Disease(KB + "Pneumonia"): None}
        patient = Patient(
            symptoms={Symptom(KB + "Fever"), Symptom(KB + "DryCough"), Symptom(KB + "HighFever")},
            pathogeny={Pathogeny(KB + "InfluenzaVirus")},
            medical_history={Disease(KB + "Pneumonia")},
            disease_index=dict(existing),
        )
        engine.compute_index(patient)
        assert set(existing) <= set(patient.disease_index)
        for value in patient.disease_index.values():
            assert 0.0 <= value <= 1.0
            assert Decimal(str(value)) == Decimal(str(value)).quantize(Decimal("0.01"))

    def test_result_does_not_depend_on_insertion_order(self, engine: DiagnosticIndexEngine):
        findings = [Symptom(KB + name) for name in ("Fever", "Cough", "ChestPain", "DryCough")]
        forward = engine.compute_index(Patient(symptoms=set(findings)))
        backward = engine.compute_index(Patient(symptoms=set(reversed(findings))))
        assert scores(forward) == scores(backward)

    def test_score_single_disease(self, engine: DiagnosticIndexEngine):
        patient = Patient(symptoms={Symptom(KB + "Cough")})
        assert engine.score(patient, Disease(KB + "Bronchitis")) == 0.71
        assert patient.disease_index == {}


@pytest.mark.parametrize(
    "value, expected",
    [
        (0.125, 0.13),  # built-in round() gives 0.12
        (0.375, 0.38),
        (0.585025, 0.59),
        (0.7071067811865475, 0.71),
        (1.0, 1.0),
        (0.0, 0.0),
    ],
)
def test_round_index_rounds_half_up(value, expected):
    assert round_index(value) == expected
