"""
Top-level package for the Discord mention bot.

This package hosts:
- config loading from config.yaml and environment variables
- the Discord on_message pipeline (admission checks, prompt assembly, replies)
- the Together AI chat-completion service and its error taxonomy
- the Google Trends helper used for trend augmentation
"""
