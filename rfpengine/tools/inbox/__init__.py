"""
Inbox module - vendor proposals received as email or pasted text.

Submodules:
- email_parse: CloudMailin payload parsing, sender and subject selectors
- email_intake: Email-to-proposal workflow (store email, extract, store proposal)
"""
