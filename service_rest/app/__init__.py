"""
Application package for the REST entry point.
"""
