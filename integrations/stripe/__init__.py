"""Stripe hosted checkout integration."""
