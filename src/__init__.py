"""Gutshof-KI Emil: chat backend for the Alter Behring Gutshof website.

Architecture Overview
=====================

Every chat request is answered by Claude with a system context that is
rebuilt per request from three parts:

1. **Static instructions**: business rules, contact data and formatting
   directives (``src/assets/system_prompt.md``).
2. **Website content**: text extracts of the Gutshof, FOODbuddy and Gutshof
   Gin pages, scraped lazily and cached for 24 hours.
3. **Free appointment slots**: Thursday slots for preliminary meetings from
   the Calendly API, cached for 5 minutes.

Key Design Decisions
--------------------
- **LLM**: Claude via ``langchain-anthropic``; fixed model and temperature,
  no silent retries.
- **Caches**: one ``RefreshingCache`` per source with immutable snapshots and
  a single-flight refresh, so concurrent misses trigger one refresh.
- **Degradation**: scraping and Calendly failures never fail a chat; the
  answer just carries less context.
- **Dual Interface**: FastAPI server (production) + CLI chat loop (development).

Package Structure
-----------------
- ``src/assistant.py``: orchestration of caches, context and LLM
- ``src/context.py``: system context assembly
- ``src/search.py``: ki-search prompt and reply interpretation
- ``src/config.py``: centralized configuration from environment variables
- ``src/prompts.py``: prompt assets
- ``src/server.py``: FastAPI application
- ``src/main.py``: CLI chat interface
- ``src/services/``: caches and external clients (pages, Calendly, Anthropic)
- ``src/api/``: FastAPI routes and Pydantic schemas
"""
