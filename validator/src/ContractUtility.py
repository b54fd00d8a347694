"""ContractUtility: Web3 initialization, signing and contract ABI loading."""

import json
from pathlib import Path

from eth_account import Account
from eth_account.signers.local import LocalAccount
from sapphirepy import sapphire
from web3 import Web3
from web3.middleware import SignAndSendRawMiddlewareBuilder

from .errors import ConfigurationError

# Oasis Sapphire networks need confidential transaction wrapping.
SAPPHIRE_CHAIN_IDS = {
    0x5AFE: "sapphire",
    0x5AFF: "sapphire-testnet",
    0x5AFD: "sapphire-localnet",
}

CONTRACTS_DIR = Path(__file__).parent.parent / "contracts"


class ContractUtility:
    """Utility for Web3 connection, signing account and ABI loading.

    :ivar rpc_url: Ledger RPC URL.
    :ivar chain_id: Expected chain ID.
    :ivar account: Local signing account of the validator.
    :ivar w3: Configured Web3 instance.
    """

    def __init__(self, rpc_url: str, chain_id: int, private_key: str) -> None:
        """Initialize the contract utility.

        :param rpc_url: RPC endpoint of the ledger.
        :param chain_id: Chain identifier used for transaction signing.
        :param private_key: Hex private key of the validator.
        :raises ConfigurationError: If the private key is malformed.
        """
        self.rpc_url = rpc_url
        self.chain_id = chain_id
        try:
            self.account: LocalAccount = Account.from_key(private_key)
        except ValueError as e:
            raise ConfigurationError(f"Invalid validator private key: {e}") from e

        self.w3 = Web3(Web3.HTTPProvider(rpc_url))
        self.w3.middleware_onion.add(SignAndSendRawMiddlewareBuilder.build(self.account))
        self.w3.eth.default_account = self.account.address
        if chain_id in SAPPHIRE_CHAIN_IDS:
            self.w3 = sapphire.wrap(self.w3)

    @property
    def address(self) -> str:
        """Checksummed address of the signing account."""
        return self.account.address

    @staticmethod
    def get_abi(contract_name: str) -> list:
        """Load the ABI of a contract shipped in the contracts folder.

        :param contract_name: Name of the contract (e.g., "IncryptOracle").
        :returns: Contract ABI.
        """
        with open(CONTRACTS_DIR / f"{contract_name}.json", "r") as file:
            return json.load(file)["abi"]
