"""Transcript evaluation.

  1. Answer Quality Validator
  2. Prompt Builder (strict rubric / compact strategies)
  3. Response Parser
  4. Evaluation Orchestrator (provider fallback + caching)
"""
