"""
Patient Flow Engine: triage classification and department queue management.
"""

__version__ = "1.0.0"
