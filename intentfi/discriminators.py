"""
Anchor-style 8-byte selectors: sha256("<namespace>:<name>")[:8].

Instructions use the "global" namespace with the snake_case method name,
accounts use the "account" namespace with the CamelCase struct name.
"""

from __future__ import annotations

import hashlib

DISCRIMINATOR_LENGTH = 8


def sighash(namespace: str, name: str) -> bytes:
    return hashlib.sha256(f"{namespace}:{name}".encode("utf-8")).digest()[:DISCRIMINATOR_LENGTH]


def instruction_discriminator(name: str) -> bytes:
    return sighash("global", name)


def account_discriminator(name: str) -> bytes:
    return sighash("account", name)


__all__ = [
    "DISCRIMINATOR_LENGTH",
    "sighash",
    "instruction_discriminator",
    "account_discriminator",
]
