# erapport/services/__init__.py
"""
Report services
Reconciliation, status migration, relational mapping, persistence and rendering
"""
