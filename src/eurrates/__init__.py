"""EUR cryptocurrency exchange rates: fetch, convert, store and serve."""
