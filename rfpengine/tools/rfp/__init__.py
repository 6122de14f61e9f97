"""
RFP module - structured RFPs, vendor proposals and their comparison.

Submodules:
- rfp: Tool entry points called by the API (create, list, compare)
- rfp_models: Pydantic records (Vendor, Rfp, Proposal, EmailMessage) and extraction models
- rfp_extract: LLM extraction of RFP specs and proposals (Gemini, Groq fallback)
- rfp_compare: Proposal scoring and ranking
- prompts_rfp: Extraction prompts
"""
