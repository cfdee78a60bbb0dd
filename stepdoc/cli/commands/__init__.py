"""CLI command handlers."""

from .print_document import print_document
from .simulate import simulate_document

__all__ = ['print_document', 'simulate_document']
