# erapport/api/deps/__init__.py - FastAPI dependencies
