"""Pinecone assistant reconciliation and actions service."""
