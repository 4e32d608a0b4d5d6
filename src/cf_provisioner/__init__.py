"""Cloudflare Pages provisioning and deployment pipeline."""

__version__ = "0.1.0"
