"""
Clinic Workflow Service

A FastAPI-based service coordinating appointments, consultations and
prescriptions, with bearer-token authentication and a role/ownership
authorization matrix.
"""

__version__ = "1.0.0"
