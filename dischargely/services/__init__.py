"""External collaborators (Supabase, Stripe, OpenAI, Turnstile) and background jobs."""
