import os
import pytest

from ontodx.store import RdfKnowledgeStore

KB = "http://purl.org/ontodx/kb#"


@pytest.fixture(scope="session")
def fpath_test_dir() -> str:
    """
    Path to `tests/data/` folder.
    """
    return os.path.join(os.path.dirname(__file__), "data")


@pytest.fixture(scope="session")
def fpath_kb(fpath_test_dir: str) -> str:
    return os.path.join(fpath_test_dir, "kb.ttl")


@pytest.fixture(scope="session")
def store(fpath_kb: str) -> RdfKnowledgeStore:
    """
    The small respiratory knowledge base in `tests/data/kb.ttl`.
    The store is read-only, so one instance serves the whole session.
    """
    return RdfKnowledgeStore.from_file(fpath_kb)
