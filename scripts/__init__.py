"""
genecompendium command-line scripts.

Direct usage:
    python scripts/curate_compendium.py --help
"""

__all__ = [
    "curate_compendium",
]
