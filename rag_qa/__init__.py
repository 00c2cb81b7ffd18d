"""Minimal retrieval-augmented QA over a fixed corpus, built on FAISS and the OpenAI API."""
