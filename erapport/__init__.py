# erapport/__init__.py
"""
eRapport
Evaluation templates, student report reconciliation and relational persistence
"""

__version__ = "1.0.0"
