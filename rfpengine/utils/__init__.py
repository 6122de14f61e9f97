"""
RFP Engine Utils - shared infrastructure.

Submodules:
- core: Logging, errors, and JSON cleanup
- llm: LLM clients (Gemini, Groq)
- db: PostgreSQL / mock record store
- vault: Secrets from Vault with environment fallback
"""
