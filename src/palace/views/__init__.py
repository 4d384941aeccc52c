"""Views: grid model, validator, store, and auto-generated views."""
