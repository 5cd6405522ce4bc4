"""FastAPI backend and the Supabase remote store."""
