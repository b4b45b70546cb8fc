"""twitchplays: let Twitch chat drive a game through simulated key presses."""

__version__ = "0.1.0"
