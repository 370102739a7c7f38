import json

import pytest
from unittest.mock import AsyncMock, MagicMock

from wyvern_engine import cli
from wyvern_engine.builder import build_sell_order
from wyvern_engine.hashing import get_order_hash, hash_order
from wyvern_engine.orders import Asset
from wyvern_engine.schemas import SchemaName
from wyvern_engine.serialization import order_from_dict, order_to_dict

SELLER = "0x1111111111111111111111111111111111111111"
TOKEN = "0x3333333333333333333333333333333333333333"
NOW = 1_700_000_000


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for name in ("WYVERN_ENV_FILE", "WYVERN_RPC_URL", "WYVERN_NETWORK", "WYVERN_PRIVATE_KEY"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def order():
    return build_sell_order(Asset(contract_address=TOKEN, token_id=3), SELLER, 1, now=NOW)


def _write(tmp_path, name, payload):
    path = tmp_path / name
    path.write_text(json.dumps(payload))
    return str(path)


def test_hash_command(tmp_path, capsys, order):
    path = _write(tmp_path, "order.json", order_to_dict(order))
    cli.run_cli(["hash", path])
    payload = json.loads(capsys.readouterr().out)
    assert payload["hash"] == "0x" + get_order_hash(order).hex()
    assert order_from_dict(payload) == hash_order(order)


def test_hash_command_reports_stale_hash(tmp_path, capsys, caplog, order):
    payload = order_to_dict(hash_order(order))
    payload["salt"] = str(order.salt + 1)
    path = _write(tmp_path, "order.json", payload)
    cli.run_cli(["hash", path])
    assert "differs from computed hash" in caplog.text
    assert json.loads(capsys.readouterr().out)["hash"] != payload["hash"]


def test_cancel_requires_hash(tmp_path, order, monkeypatch):
    monkeypatch.setattr(cli.WyvernClient, "from_config", MagicMock())
    path = _write(tmp_path, "order.json", order_to_dict(order))
    with pytest.raises(SystemExit, match="no hash"):
        cli.run_cli(["--rpc-url", "http://localhost:8545", "cancel", path])


def test_missing_rpc_url(tmp_path, order):
    path = _write(tmp_path, "order.json", order_to_dict(hash_order(order)))
    with pytest.raises(SystemExit, match="RPC URL"):
        cli.run_cli(["cancel", path])


def test_sell_command(tmp_path, monkeypatch, order):
    client = MagicMock()
    client.create_sell_order = AsyncMock(return_value=hash_order(order))
    from_config = MagicMock(return_value=client)
    monkeypatch.setattr(cli.WyvernClient, "from_config", from_config)
    output = tmp_path / "listing.json"

    cli.run_cli(
        [
            "--rpc-url",
            "http://localhost:8545",
            "--private-key",
            "0x" + "4c" * 32,
            "sell",
            "--contract",
            TOKEN,
            "--token-id",
            "3",
            "--schema",
            "ERC1155",
            "--quantity",
            "2",
            "--price",
            "1.5",
            "--output",
            str(output),
        ]
    )

    config, private_key = from_config.call_args.args
    assert config.rpc_url == "http://localhost:8545"
    assert private_key == "0x" + "4c" * 32
    asset = client.create_sell_order.await_args.args[0]
    assert asset == Asset(contract_address=TOKEN, token_id=3, quantity=2, schema_name=SchemaName.ERC1155)
    assert client.create_sell_order.await_args.args[1] == "1.5"
    assert json.loads(output.read_text())["hash"] == "0x" + get_order_hash(order).hex()


def test_fees_command(tmp_path, capsys, monkeypatch, order):
    breakdown = MagicMock(proxy_fees="0", approval_fees="46000", gas_fees="0", total_fees="46000")
    client = MagicMock()
    client.calculate_gas_fees = AsyncMock(return_value=breakdown)
    monkeypatch.setattr(cli.WyvernClient, "from_config", MagicMock(return_value=client))
    path = _write(tmp_path, "order.json", order_to_dict(hash_order(order)))

    cli.run_cli(["--rpc-url", "http://localhost:8545", "fees", path])

    assert json.loads(capsys.readouterr().out)["total_fees"] == "46000"
    assert client.calculate_gas_fees.await_args.args[1] is None
