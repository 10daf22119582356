"""Layered system instructions and user preference handling."""

from sports_proxy.prompts.assembler import InstructionAssembler, UserContext
from sports_proxy.prompts.preferences import InMemoryPreferenceStore, PreferenceStore, UserPreferences

__all__ = [
    "InMemoryPreferenceStore",
    "InstructionAssembler",
    "PreferenceStore",
    "UserContext",
    "UserPreferences",
]
