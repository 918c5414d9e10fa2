"""
grabfiles - snapshot a project for LLM ingestion.

Finds the files that belong to a project (``git ls-files`` inside a Git
working tree, a gitignore-aware directory walk elsewhere), renders them as an
indented tree and concatenates their contents into one text blob.
"""

__version__ = "0.2.0"
__author__ = "grabfiles Team"

DEFAULT_OUTPUT_FILENAME = "grabfiles.txt"
