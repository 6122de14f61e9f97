"""
RFP Engine Tools - procurement workflows.

Submodules:
- rfp: RFP and proposal records, LLM extraction, proposal comparison
- inbox: Inbound vendor email parsing and proposal intake
"""
