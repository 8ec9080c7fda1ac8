"""
BirthGuide - Backend Application Package

Decision engine for guiding an unplanned home birth:
- Labor session state, decision catalog and next-action resolution
- Session state persistence
- Static guidance and emergency protocols
- HTTP adapter for UI clients
"""

__version__ = "0.1.0"
