"""uploadgate HTTP layer.

  - routes.py       — GET/POST on ``/`` and ``/secureUpload``
  - objects.py      — ``/objects`` download route for the memory store
  - responses.py    — JSON success / error builders
  - dependencies.py — require_ready, get_orchestrator
  - limiter.py      — shared slowapi Limiter
"""
