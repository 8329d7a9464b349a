"""
Patient registry: anonymised subjects that diagnostics are recorded against.
"""
