"""
BirthGuide - Services Package

Collaborators at the engine boundary.

Design Pattern:
    Each service defines a Protocol (interface) and one or more implementations,
    injected at startup so they can be swapped or faked in tests.
"""

from .intent_matcher import IntentMatcher, KeywordIntentMatcher

__all__ = [
    "IntentMatcher",
    "KeywordIntentMatcher",
]
