# packwarden/core/__init__.py
