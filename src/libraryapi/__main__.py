"""Main entry point for the libraryapi package."""

from libraryapi.cli import main

if __name__ == "__main__":
    main()
