"""Adapters para vaults externos."""

from .op_cli import DEFAULT_TOKEN_PATH, OnePasswordCliResolver, read_token

__all__ = ["DEFAULT_TOKEN_PATH", "OnePasswordCliResolver", "read_token"]
