# erapport/api/__init__.py - HTTP layer
