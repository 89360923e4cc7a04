from unittest.mock import AsyncMock, MagicMock

import pytest

from refuel.core.chains import ChainFamily, SupportedChain
from refuel.core.errors import ConfirmationTimeoutError, SubmissionError
from refuel.providers.rpc import RpcError
from refuel.providers.solana import SolanaLedgerGateway
from refuel.providers.models import WalletCredential

SENDER = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
RECIPIENT = "So11111111111111111111111111111111111111112"
BLOCKHASH = {"value": {"blockhash": "EkSnNWid2cvwEVnVx9aBqawnmiCNiDgp3gUdkDPTKN1N", "lastValidBlockHeight": 150}}


def _rpc(responses):
    async def call(method, params):
        value = responses[method]
        if isinstance(value, Exception):
            raise value
        return value

    return AsyncMock(side_effect=call)


@pytest.fixture
def credential() -> WalletCredential:
    signer = MagicMock()
    signer.sign = AsyncMock(return_value="AQIDBA==")
    return WalletCredential(ChainFamily.SOLANA, SENDER, signer=signer)


@pytest.fixture
def gateway() -> SolanaLedgerGateway:
    return SolanaLedgerGateway(
        "https://api.mainnet-beta.solana.com",
        confirmation_timeout_s=0.05,
        poll_interval_s=0.01,
    )


@pytest.mark.asyncio
async def test_get_balance_returns_lamports(gateway):
    gateway._rpc_call = _rpc({"getBalance": {"context": {"slot": 1}, "value": 2_500_000_000}})

    assert await gateway.get_balance(SENDER) == 2_500_000_000


@pytest.mark.asyncio
async def test_malformed_balance_response_raises(gateway):
    gateway._rpc_call = _rpc({"getBalance": None})

    with pytest.raises(ValueError):
        await gateway.get_balance(SENDER)


@pytest.mark.asyncio
async def test_native_transfer_confirms(gateway, credential):
    gateway._rpc_call = _rpc({
        "getLatestBlockhash": BLOCKHASH,
        "sendTransaction": "5sig",
        "getSignatureStatuses": {"value": [{"slot": 42, "confirmationStatus": "confirmed", "err": None}]},
    })

    receipt = await gateway.submit_native_transfer(credential, RECIPIENT, 1_000_000)

    assert receipt.tx_hash == "5sig"
    assert receipt.block_number == 42
    chain, payload = credential.signer.sign.await_args.args
    assert chain == SupportedChain.SOLANA
    assert payload["lamports"] == 1_000_000
    assert payload["to"] == RECIPIENT
    assert payload["recentBlockhash"] == BLOCKHASH["value"]["blockhash"]


@pytest.mark.asyncio
async def test_debit_error_is_fee_related(gateway, credential):
    gateway._rpc_call = _rpc({
        "getLatestBlockhash": BLOCKHASH,
        "sendTransaction": RpcError("sendTransaction", {
            "message": "Transaction simulation failed: Attempt to debit an account but found no record of a prior credit.",
        }),
    })

    with pytest.raises(SubmissionError) as exc_info:
        await gateway.submit_native_transfer(credential, RECIPIENT, 1)

    assert exc_info.value.context.fee_related is True


@pytest.mark.asyncio
async def test_on_chain_error_fails(gateway):
    gateway._rpc_call = _rpc({
        "getSignatureStatuses": {"value": [{"slot": 1, "confirmationStatus": "confirmed", "err": {"InstructionError": [0, "Custom"]}}]},
    })

    with pytest.raises(SubmissionError):
        await gateway.wait_for_confirmation("5sig")


@pytest.mark.asyncio
async def test_unseen_signature_times_out(gateway):
    gateway._rpc_call = _rpc({"getSignatureStatuses": {"value": [None]}})

    with pytest.raises(ConfirmationTimeoutError) as exc_info:
        await gateway.wait_for_confirmation("5sig")

    assert exc_info.value.context.tx_hash == "5sig"
