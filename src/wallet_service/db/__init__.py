"""Database engine, session and type helpers."""
