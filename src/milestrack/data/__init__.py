"""
Data access submodule: local documents, the remote source and the composition root.
"""

from .core import DataCore
from .source import GitHubSource
from .io import load_document, load_text, atomic_write

__all__ = [
    'DataCore',
    'GitHubSource',
    'load_document',
    'load_text',
    'atomic_write',
]
