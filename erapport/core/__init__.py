# erapport/core/__init__.py
