# packwarden/catalog/__init__.py
