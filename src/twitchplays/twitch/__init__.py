"""Twitch identity and chat integration."""
