"""
`.env` loading.

The offer-lookup credential (`SALLING_API_KEY`) usually lives in a repo-local
`.env`. It is searched for from the working directory upwards, so uvicorn and
pytest find it wherever they are started inside the repo.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import find_dotenv, load_dotenv


@lru_cache
def load_dotenv_if_present() -> Path | None:
    """Load the nearest `.env` once; returns its path (or None).

    It never overrides env vars already set in the process environment.
    """
    found = find_dotenv(usecwd=True)
    if not found:
        return None
    load_dotenv(dotenv_path=found, override=False)
    return Path(found)
