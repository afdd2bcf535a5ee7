"""
Environment-driven configuration shared by the service, the CLI and the MCP gateway.

Values are read once at import time. A ``.env`` file in the working directory
is loaded first so local development does not need exported variables.
"""
from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


# Canvas LMS
CANVAS_API_BASE = os.getenv("CANVAS_API_BASE", "https://canvas.its.virginia.edu/api/v1")
CANVAS_ACCESS_TOKEN = os.getenv("CANVAS_ACCESS_TOKEN", "")
CANVAS_TIMEOUT = float(os.getenv("CANVAS_TIMEOUT", "30"))
COURSES_PAGE_SIZE = 50
ASSIGNMENTS_PAGE_SIZE = 100

# Generative model, reached through Gemini's OpenAI-compatible endpoint
GOOGLE_API_KEY = os.getenv("GOOGLE_GENERATIVE_AI_API_KEY") or os.getenv("GOOGLE_API_KEY") or ""
LLM_BASE_URL = os.getenv("LLM_BASE_URL", "https://generativelanguage.googleapis.com/v1beta/openai/")
PRIORITIZATION_MODEL = os.getenv("PRIORITIZATION_MODEL", "gemini-2.0-flash")
SYLLABUS_MODEL = os.getenv("SYLLABUS_MODEL", "gemini-1.5-pro")
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "60"))

# Service
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
SERVICE_HOST = os.getenv("SERVICE_HOST", "0.0.0.0")
SERVICE_PORT = int(os.getenv("SERVICE_PORT", "8000"))
