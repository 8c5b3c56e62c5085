"""
Knowledge-base access.

High level
----------
The diagnostic core only ever asks two questions of the knowledge graph:

- "which restriction axioms are declared on class X?"  (restrictions_on_class)
- "which restriction axioms on property P are declared on class X?"
  (restrictions_for_property)

`KnowledgeStore` is that contract. `RdfKnowledgeStore` implements it over an
OWL ontology parsed with rdflib. All indexes (subclass edges, restrictions
per class) are built once in the constructor and never mutated afterwards,
so one store can serve any number of concurrent readers without locking.

Restrictions are read from `C rdfs:subClassOf [ a owl:Restriction ; ... ]`
statements. `owl:someValuesFrom` is existential, `owl:allValuesFrom` is
universal; any other restriction shape is kept with kind OTHER and no filler.

Environment
-----------
ONTODX_NAMESPACE : Namespace used to resolve bare local names
                   (default "http://purl.org/ontodx/kb#").
"""

import abc
import logging
import os
import re
import typing

from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum

from rdflib import OWL, RDF, RDFS, Graph, URIRef
from rdflib.util import guess_format


# ------------------------------------------------------------------------------
# Module configuration
# ------------------------------------------------------------------------------

DEFAULT_NAMESPACE = os.getenv("ONTODX_NAMESPACE", "http://purl.org/ontodx/kb#")

_FULL_IRI = re.compile(r"^(?:[A-Za-z][A-Za-z0-9+.\-]*://|urn:)")
_CURIE = re.compile(r"^(?P<prefix>[A-Za-z_][\w.\-]*)?:(?P<reference>[^/].*)$")


class UnknownTermError(KeyError):
    """Raised when an identifier does not name a class of the knowledge graph."""

    def __init__(self, term: str):
        super().__init__(term)
        self.term = term

    def __str__(self) -> str:
        return f"Unknown term {self.term!r}"


class KnowledgeBaseError(RuntimeError):
    """Raised when a knowledge-base file cannot be read or parsed."""


class RestrictionKind(Enum):
    UNIVERSAL = "all_values_from"
    EXISTENTIAL = "some_values_from"
    OTHER = "other"


class Taxonomy:
    """
    Named-class subclass edges, indexed in both directions.

    Walks use an explicit worklist with a visited set, so a cyclic
    taxonomy terminates.
    """

    def __init__(self, edges: typing.Iterable[tuple[str, str]]):
        children = defaultdict(set)
        parents = defaultdict(set)
        for child, parent in edges:
            children[parent].add(child)
            parents[child].add(parent)
        self._children = {k: frozenset(v) for k, v in children.items()}
        self._parents = {k: frozenset(v) for k, v in parents.items()}

    def descendants(self, iri: str) -> frozenset[str]:
        """`iri` plus every class transitively below it."""
        return frozenset(self._walk([iri], self._children))

    def ancestors(self, iri: str) -> frozenset[str]:
        """Every class reachable from `iri` by one or more superclass edges."""
        return frozenset(self._walk(self._parents.get(iri, ()), self._parents))

    def is_subclass_of(self, iri: str, ancestor: str) -> bool:
        return ancestor in self.ancestors(iri)

    @staticmethod
    def _walk(starts: typing.Iterable[str], edges: dict[str, frozenset[str]]) -> set[str]:
        visited = set(starts)
        worklist = list(visited)
        while worklist:
            current = worklist.pop()
            for nxt in edges.get(current, ()):
                if nxt not in visited:
                    visited.add(nxt)
                    worklist.append(nxt)
        return visited


@dataclass(frozen=True)
class RestrictionAxiom:
    """
    `on_class rdfs:subClassOf [ owl:onProperty on_property ; <kind> filler ]`.

    `filler` is None for OTHER restrictions and for anonymous filler expressions.
    """

    on_class: str
    on_property: str
    kind: RestrictionKind
    filler: typing.Optional[str]
    taxonomy: Taxonomy = field(compare=False, repr=False)

    def filler_closure(self) -> frozenset[str]:
        """The filler class and all of its transitive subclasses."""
        if self.filler is None:
            return frozenset()
        return self.taxonomy.descendants(self.filler)

    def filler_is_a(self, ancestor: str) -> bool:
        """True if the filler is a direct or indirect subclass of `ancestor`."""
        if self.filler is None:
            return False
        return self.taxonomy.is_subclass_of(self.filler, ancestor)


class KnowledgeStore(metaclass=abc.ABCMeta):
    @abc.abstractmethod
    def restrictions_on_class(self, class_identifier: str) -> typing.Sequence[RestrictionAxiom]:
        """
        Restriction axioms declared on the class.
        Raises UnknownTermError if the class is not in the graph.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def restrictions_for_property(self, property_identifier: str, anchor_class_name: str) -> typing.Set[RestrictionAxiom]:
        """
        Restriction axioms on `property_identifier` declared on the anchor class.
        Returns an empty set if there are none.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def has_class(self, class_identifier: str) -> bool:
        raise NotImplementedError

    @abc.abstractmethod
    def resolve(self, name: str) -> str:
        """Expand a local name or CURIE to a full IRI. Full IRIs pass through unchanged."""
        raise NotImplementedError


class RdfKnowledgeStore(KnowledgeStore):
    def __init__(self, graph: Graph, namespace: typing.Optional[str] = None):
        self._namespace = namespace or DEFAULT_NAMESPACE
        self._prefixes = {prefix: str(ns) for prefix, ns in graph.namespaces()}

        subclass_edges: list[tuple[str, str]] = []
        classes: set[str] = set()
        for class_type in (OWL.Class, RDFS.Class):
            classes.update(str(s) for s in graph.subjects(RDF.type, class_type) if isinstance(s, URIRef))

        # (class, restriction node) pairs; resolved once the taxonomy exists
        pending: list[tuple[str, typing.Any]] = []
        for child, parent in graph.subject_objects(RDFS.subClassOf):
            if not isinstance(child, URIRef):
                continue
            classes.add(str(child))
            if isinstance(parent, URIRef):
                classes.add(str(parent))
                subclass_edges.append((str(child), str(parent)))
            elif graph.value(parent, OWL.onProperty) is not None:
                pending.append((str(child), parent))

        self._classes = frozenset(classes)
        self._taxonomy = Taxonomy(subclass_edges)

        by_class = defaultdict(set)
        for on_class, node in pending:
            by_class[on_class].add(self._read_restriction(graph, on_class, node))
        self._restrictions = {
            on_class: tuple(sorted(axioms, key=_axiom_sort_key))
            for on_class, axioms in by_class.items()
        }

        logging.info(
            f"Loaded knowledge base: {len(self._classes)} classes, "
            f"{len(subclass_edges)} subclass edges, "
            f"{sum(len(v) for v in self._restrictions.values())} restrictions"
        )

    @classmethod
    def from_file(cls, path: str, rdf_format: typing.Optional[str] = None, namespace: typing.Optional[str] = None) -> "RdfKnowledgeStore":
        """
        Parse an ontology file (Turtle, RDF/XML, N-Triples, JSON-LD, ...).
        The format is guessed from the file extension unless given.
        """
        fmt = rdf_format or guess_format(str(path)) or "xml"
        graph = Graph()
        try:
            graph.parse(str(path), format=fmt)
        except Exception as e:
            raise KnowledgeBaseError(f"Failed to load knowledge base '{path}': {e}") from e
        return cls(graph, namespace=namespace)

    @property
    def taxonomy(self) -> Taxonomy:
        return self._taxonomy

    def resolve(self, name: str) -> str:
        name = name.strip()
        if _FULL_IRI.match(name):
            return name
        m = _CURIE.match(name)
        if m:
            prefix = m.group("prefix") or ""
            if prefix in self._prefixes:
                return self._prefixes[prefix] + m.group("reference")
            return name
        return self._namespace + name

    def has_class(self, class_identifier: str) -> bool:
        return self.resolve(class_identifier) in self._classes

    def restrictions_on_class(self, class_identifier: str) -> list[RestrictionAxiom]:
        iri = self.resolve(class_identifier)
        if iri not in self._classes:
            raise UnknownTermError(class_identifier)
        return list(self._restrictions.get(iri, ()))

    def restrictions_for_property(self, property_identifier: str, anchor_class_name: str) -> set[RestrictionAxiom]:
        prop = self.resolve(property_identifier)
        return {
            axiom
            for axiom in self.restrictions_on_class(anchor_class_name)
            if axiom.on_property == prop
        }

    def _read_restriction(self, graph: Graph, on_class: str, node) -> RestrictionAxiom:
        on_property = str(graph.value(node, OWL.onProperty))
        some = graph.value(node, OWL.someValuesFrom)
        every = graph.value(node, OWL.allValuesFrom)
        if some is not None:
            kind, filler = RestrictionKind.EXISTENTIAL, some
        elif every is not None:
            kind, filler = RestrictionKind.UNIVERSAL, every
        else:
            kind, filler = RestrictionKind.OTHER, None
        # anonymous class expressions (unions, intersections) have no single named filler
        filler_iri = str(filler) if isinstance(filler, URIRef) else None
        return RestrictionAxiom(
            on_class=on_class,
            on_property=on_property,
            kind=kind,
            filler=filler_iri,
            taxonomy=self._taxonomy,
        )


def _axiom_sort_key(axiom: RestrictionAxiom) -> tuple[str, str, str]:
    return axiom.on_property, axiom.kind.value, axiom.filler or ""
