"""
Persistence gateway adapters.

- airtable.py: AirtableGateway (Airtable REST API over httpx)
- offline.py: InMemoryGateway (dict-backed; demos and tests)
"""
