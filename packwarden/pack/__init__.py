# packwarden/pack/__init__.py
