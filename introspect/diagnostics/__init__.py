"""
Diagnostic submission and the review workflow.
"""
