"""
Disease -> related findings, read from restriction axioms.

For a disease D and a relation R the knowledge base states
`D rdfs:subClassOf [ owl:onProperty R ; owl:someValuesFrom F ]` (or
allValuesFrom). Every class in the subclass closure of F is related to D.

Environment
-----------
ONTODX_SYMPTOM_RELATION   : property linking a disease to its symptoms (default "manifests")
ONTODX_PATHOGENY_RELATION : property linking a disease to its pathogenic factors (default "causes")
ONTODX_DISEASE_RELATION   : property linking a disease to diseases it triggers (default "triggers")
"""

import os
import typing

from .resource import BodySigns, Disease, Pathogeny, Resource, Symptom
from .store import KnowledgeStore

SYMPTOM_RELATION = os.getenv("ONTODX_SYMPTOM_RELATION", "manifests")
PATHOGENY_RELATION = os.getenv("ONTODX_PATHOGENY_RELATION", "causes")
DISEASE_RELATION = os.getenv("ONTODX_DISEASE_RELATION", "triggers")

R = typing.TypeVar("R", bound=Resource)


class RelationExpander:
    def __init__(
        self,
        store: KnowledgeStore,
        symptom_relation: str = SYMPTOM_RELATION,
        pathogeny_relation: str = PATHOGENY_RELATION,
        disease_relation: str = DISEASE_RELATION,
    ):
        self._store = store
        self._symptom_relation = symptom_relation
        self._pathogeny_relation = pathogeny_relation
        self._disease_relation = disease_relation

    def related_symptoms(self, disease: Disease) -> set[Symptom]:
        return self._expand(disease, self._symptom_relation, Symptom)

    def related_pathogeny(self, disease: Disease) -> set[Pathogeny]:
        return self._expand(disease, self._pathogeny_relation, Pathogeny)

    def related_diseases(self, disease: Disease) -> set[Disease]:
        """Diseases that `disease` can trigger."""
        return self._expand(disease, self._disease_relation, Disease)

    def related_body_signs(self, disease: Disease) -> set[BodySigns]:
        # body-sign relations are not modeled in the knowledge base
        return set()

    def _expand(self, disease: Disease, relation: str, wrap: typing.Type[R]) -> set[R]:
        related: set[R] = set()
        for axiom in self._store.restrictions_for_property(relation, disease.iri):
            related.update(wrap(iri) for iri in axiom.filler_closure())
        return related
