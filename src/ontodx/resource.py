"""
Resource domain model.

Defines the thin, IRI-identified wrappers used for knowledge-base classes:
Disease, Symptom, BodySigns and Pathogeny.
"""

import re
from dataclasses import dataclass

# Patterns
_IRI_PATTERN = re.compile(r"^\S+$")


@dataclass(frozen=True)
class Resource:
    """
    Anything identified by a single IRI.

    Attributes:
        iri: Full IRI of the knowledge-base class (e.g. 'http://purl.org/ontodx/kb#Influenza').
    """

    iri: str

    def __post_init__(self):
        # Validate IRI
        if not isinstance(self.iri, str) or not _IRI_PATTERN.match(self.iri):
            raise ValueError(f"Invalid IRI: {self.iri!r}")

    @property
    def local_name(self) -> str:
        """Fragment after the last '#' or '/' of the IRI."""
        return re.split(r"[#/]", self.iri.rstrip("#/"))[-1]


@dataclass(frozen=True)
class Disease(Resource):
    """A disease or syndrome class."""


@dataclass(frozen=True)
class Symptom(Resource):
    """A symptom class."""


@dataclass(frozen=True)
class BodySigns(Resource):
    """A body sign class (physical examination finding)."""


@dataclass(frozen=True)
class Pathogeny(Resource):
    """A pathogenic factor class."""
