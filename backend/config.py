"""
Backend configuration.

Values come from the environment, optionally seeded from a .env file that
sits next to this module.

  DATABASE_URL            Postgres/Supabase URL; empty means local-only mode
  LOCAL_CACHE_PATH        sqlite file for the local cache (default :memory:)
  FRONTEND_URL            allowed CORS origin
  REMOTE_CONNECT_TIMEOUT  seconds allowed for the remote liveness probe
  LOG_LEVEL               root logger level
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

env_path = os.path.join(os.path.dirname(__file__), ".env")
if os.path.exists(env_path):
    load_dotenv(env_path)

DATABASE_URL = os.environ.get("DATABASE_URL", "")
LOCAL_CACHE_PATH = os.environ.get("LOCAL_CACHE_PATH", ":memory:")
FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:3000")
REMOTE_CONNECT_TIMEOUT = float(os.environ.get("REMOTE_CONNECT_TIMEOUT", "3"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
