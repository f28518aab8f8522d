# erapport/schemas/__init__.py - Request, response and domain shapes
