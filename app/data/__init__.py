"""
Data access for the JSON-based Composer repository.

This package is responsible for:
* Determining the data directory (via env var + sensible default).
* Loading and persisting repository configuration and users.
* Reading and updating per-package metadata documents.
* Maintaining the aggregated packages.json index.
"""
