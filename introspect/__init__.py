"""
Introspect - malaria diagnostic submission, review and alerting backend.
"""
__version__ = "1.0.0"
