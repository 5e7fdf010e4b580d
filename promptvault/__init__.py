"""PromptVault — an encrypted, local-first prompt library mirrored to GitHub Gists."""

__version__ = "0.1.0"
