"""
RFP Engine - procurement backend.

Turns free-text procurement requests into structured RFPs, collects vendor
proposals (typed in or received by email) and ranks them.

Subpackages:
- tools: RFP, proposal and email intake workflows
- utils: Logging, errors, configuration, LLM clients and storage
"""
