"""
Publisher Config API - REST API for publisher configuration files

This package provides a FastAPI-based web service that manages a directory
of JSON publisher configs and the ``publishers.json`` index listing them.
It enables:

- Listing publishers from the index, sorted by alias
- Reading, creating, updating and deleting individual publisher configs
- Keeping the index in step with the config files on every mutation
- Structural validation of config bodies and filenames
- An append-only audit log of mutations and failures

Key Components:
    - main: FastAPI application and HTTP endpoint definitions
    - store: Publisher file + index orchestration
    - locks: Per-file lock registry serializing concurrent writers
    - index_repository: Reading, validating and writing the index
    - validation: Filename and config body checks
    - middleware: Rate limiting and request size limits
    - security: Static API key dependency
    - audit: Best-effort rotating audit log
    - configuration: Settings loading (defaults, YAML, environment)

Usage:
    Run the API server with:
        uvicorn publisher_config_api.main:app --reload --host 0.0.0.0 --port 3001

    Or use the console script:
        publisher-config-api

Architecture Principles:
    - The data directory is the only persistent store
    - One in-flight mutation per file within the process
    - Client mistakes are rejected before any disk I/O
    - Logging never causes a request to fail
"""
