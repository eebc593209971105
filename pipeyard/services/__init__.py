"""
Services Layer
Entry points used by routes and scripts.

Services should:
- Call into the business layer for every mutation
- Convert domain errors into structured results
- Be stateless
"""
