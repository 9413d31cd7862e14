"""
Token and Vault wired together.

The Vault takes the Token address as a constructor argument, and the
Token then authorizes the Vault as a minter.
"""
from deploykit import build_module


def declare(m):
    supply = m.get_parameter("initialSupply", 1000000)
    token = m.contract("Token", ["Example Token", "EXT", supply])
    vault = m.contract("Vault", [token])
    m.call(token, "setMinter", [vault, True])
    return {"token": token, "vault": vault}


TokenVaultModule = build_module("TokenVaultModule", declare)
