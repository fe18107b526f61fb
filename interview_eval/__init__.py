"""Interview evaluation pipeline.

Delegates transcript scoring to interchangeable LLM providers with:
  - Answer quality pre-screen (advisory flags in the prompt)
  - Provider-agnostic prompt and output schema
  - Tolerant parsing of semi-structured JSON replies
  - Primary → secondary provider fallback
  - Best-effort Redis cache-aside
"""
