"""nearctl: construct, sign and send NEAR transactions from flags or prompts."""

from .keys import KeyFormatError, PublicKey, SecretKey, Signature, generate_keypair
from .model import (
    Action,
    AddFullAccessKey,
    AddFunctionCallKey,
    CreateAccount,
    DeleteAccount,
    DeleteKey,
    DeployContract,
    FunctionCall,
    SignedTransaction,
    Stake,
    Transfer,
    UnsignedTransaction,
)
from .codec import serialize_signed_transaction, serialize_transaction, transaction_hash
from .units import AmountFormatError, NearBalance, NearGas

__all__ = [
    "Action",
    "AddFullAccessKey",
    "AddFunctionCallKey",
    "CreateAccount",
    "DeleteAccount",
    "DeleteKey",
    "DeployContract",
    "FunctionCall",
    "SignedTransaction",
    "Stake",
    "Transfer",
    "UnsignedTransaction",
    "KeyFormatError",
    "PublicKey",
    "SecretKey",
    "Signature",
    "generate_keypair",
    "serialize_signed_transaction",
    "serialize_transaction",
    "transaction_hash",
    "AmountFormatError",
    "NearBalance",
    "NearGas",
]
