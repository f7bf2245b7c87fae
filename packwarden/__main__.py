# packwarden/__main__.py
from packwarden.cli import main

main()
