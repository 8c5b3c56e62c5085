import os
import typing

from .resource import Disease
from .store import KnowledgeStore, RestrictionKind

DISEASE_ROOT = os.getenv("ONTODX_DISEASE_ROOT", "DiseaseOrSyndrome")


class CandidateDiscoverer:
    """
    Finding -> candidate diseases.

    A disease is a candidate for a finding when the finding's class carries a
    universal or existential restriction whose filler sits below the
    Disease/Syndrome root. The root itself is too generic to be a candidate.
    """

    def __init__(self, store: KnowledgeStore, disease_root: typing.Optional[str] = None):
        self._store = store
        self._disease_root = store.resolve(disease_root or DISEASE_ROOT)

    @property
    def disease_root(self) -> str:
        return self._disease_root

    def candidates_for(self, finding_iri: str) -> set[Disease]:
        """Raises UnknownTermError if `finding_iri` is not a class of the knowledge base."""
        candidates: set[Disease] = set()
        for axiom in self._store.restrictions_on_class(finding_iri):
            if axiom.kind not in (RestrictionKind.UNIVERSAL, RestrictionKind.EXISTENTIAL):
                continue
            if axiom.filler_is_a(self._disease_root):
                candidates.add(Disease(axiom.filler))
        return candidates
