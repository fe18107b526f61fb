"""LLM provider gateway.

Provider adapters (Groq primary, Gemini secondary) that submit a prompt and
return raw reply text, raising ProviderError on any failure. No retries.
"""
