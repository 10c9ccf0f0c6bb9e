from web3 import Web3


class LinkHasher:
    """keccak256 of the URL's UTF-8 bytes, 0x-prefixed hex (the contract's bytes32 id)."""

    def hash(self, url: str) -> str:
        # no canonicalization: case and trailing slashes are significant
        return Web3.to_hex(Web3.keccak(text=url))
