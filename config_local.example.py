# config_local.example.py

"""
Example local overrides.

Usage:
  1) Copy this file to `config_local.py`
  2) Adjust values for your machine
  3) Never commit `config_local.py` (it is gitignored)

Prefer `.env` for secrets. This file should contain only safe overrides.
"""

# Example: review every task before it is saved to Airtable
# AUTO_PERSIST = False

# Example: change model order
# LLM_MODELS = [
#     "gpt-4o-mini",
# ]

# Example: run without the console (nothing else to run yet)
# CONSOLE_ENABLED = False
