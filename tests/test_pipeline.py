from nearctl.actions import ActionArgs
from nearctl.context import NetworkContext
from nearctl.keys import SecretKey
from nearctl.pipeline import TransactionArgs, resolve_network_context, run_transaction
from nearctl.rpc_client import RPCError
from nearctl.signing import SignArgs, SignOptionRegistry

SECRET = SecretKey(bytes(range(32)))


def _factory(client):
    created = []

    def factory(config):
        created.append(config)
        return client

    return factory, created


def test_offline_flag_skips_network_setup(scripted, stub_client):
    factory, created = _factory(stub_client)

    context = resolve_network_context(scripted(), offline=True, env={}, client_factory=factory)

    assert context.offline
    assert created == []


def test_network_from_environment_selects_online_mode(scripted, stub_client):
    factory, created = _factory(stub_client)

    context = resolve_network_context(
        scripted(), env={"NEARCTL_NETWORK": "mainnet"}, client_factory=factory
    )

    assert context.connection.name == "mainnet"
    assert context.connection.client is stub_client
    assert created[0].rpc_url.startswith("https://")


def test_interactive_mode_menu_can_pick_offline(scripted, stub_client):
    factory, created = _factory(stub_client)
    prompter = scripted([1])

    context = resolve_network_context(prompter, env={}, client_factory=factory)

    assert context.offline
    assert created == []


def test_interactive_network_menu_and_rpc_override(scripted, stub_client):
    factory, created = _factory(stub_client)
    prompter = scripted([0, 1])

    context = resolve_network_context(
        prompter, env={}, rpc_url="http://127.0.0.1:3030", client_factory=factory
    )

    assert context.connection.name == "testnet"
    assert created[0].rpc_url == "http://127.0.0.1:3030"
    assert prompter.selections[1][1][:3] == ["mainnet", "testnet", "betanet"]


def test_views_never_offer_offline_mode(scripted, stub_client):
    factory, _ = _factory(stub_client)
    prompter = scripted([0])

    context = resolve_network_context(prompter, allow_offline=False, env={}, client_factory=factory)

    assert context.connection.name == "mainnet"
    assert len(prompter.selections) == 1


def test_stake_targets_the_sender(scripted, connection, stub_client):
    validator = SecretKey(bytes([1]) * 32).public_key
    args = TransactionArgs(
        sender="a.testnet",
        receiver_is_sender=True,
        actions=[ActionArgs("stake", {"amount": "4NEAR", "validator-key": str(validator)})],
        finished=True,
        sign=SignArgs(method="private-key", signer_private_key=str(SECRET)),
        submit="send",
    )

    status = run_transaction(scripted(), NetworkContext(connection), args, SignOptionRegistry.default())

    assert status == 0
    assert len(stub_client.broadcasts) == 1


def test_rejected_send_returns_non_zero(scripted, connection):
    class RejectingClient(type(connection.client)):
        def broadcast_tx_commit(self, payload):
            raise RPCError(-32000, "Server error", data={"InvalidTxError": "InvalidSignature"})

    client = RejectingClient(accounts={"a.testnet": 10 * 10**24, "b.testnet": 1})
    online = type(connection)(config=connection.config, client=client)
    prompter = scripted()
    args = TransactionArgs(
        sender="a.testnet",
        receiver="b.testnet",
        actions=[ActionArgs("transfer", {"amount": "1NEAR"})],
        finished=True,
        sign=SignArgs(method="private-key", signer_private_key=str(SECRET)),
        submit="send",
    )

    status = run_transaction(prompter, NetworkContext(online), args, SignOptionRegistry.default())

    assert status == 1
    assert any("signature does not match" in notice for notice in prompter.notices)


def test_preview_lists_actions_in_order(scripted):
    prompter = scripted()
    args = TransactionArgs(
        sender="a",
        receiver="b",
        actions=[
            ActionArgs("transfer", {"amount": "1NEAR"}),
            ActionArgs("transfer", {"amount": "2NEAR"}),
        ],
        finished=True,
        sign=SignArgs(method="manual", signer_public_key=str(SECRET.public_key), nonce="1", block_hash="1" * 32),
    )

    assert run_transaction(prompter, NetworkContext(), args, SignOptionRegistry.default()) == 0

    preview = prompter.notices[0]
    assert preview.index("1. transfer 1 NEAR") < preview.index("2. transfer 2 NEAR")
