# erapport/api/routers/__init__.py - Route modules registered by erapport.main
