"""
Entry point for running the console client as a module.

Usage:
    python -m talking_character.assistant
"""

from .app import main

if __name__ == "__main__":
    main()
