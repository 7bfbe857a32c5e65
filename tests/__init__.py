"""
Test suite for the Clinic Workflow Service.

Contains unit and integration tests for authentication, authorization and
the appointment → consultation → prescription workflow.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
