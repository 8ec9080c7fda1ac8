"""
BirthGuide - API Package

HTTP adapter over the decision engine.
"""
