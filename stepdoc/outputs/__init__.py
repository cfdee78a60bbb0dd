"""Output descriptors and selector resolution."""

from .selector import Selector, compile_selector
from .descriptor import OutputDescriptor

__all__ = ['Selector', 'compile_selector', 'OutputDescriptor']
