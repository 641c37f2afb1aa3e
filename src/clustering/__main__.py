"""
Entry point for running clustering as a module.

Usage:
    python3 -m src.clustering --scope-id <project-id> [--dry-run]
"""

from .run_clustering import main

if __name__ == '__main__':
    main()
