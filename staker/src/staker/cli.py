"""
Command-line interface for the vault staker.
"""

from __future__ import annotations

import asyncio
import sys
from typing import Annotated

import typer
from loguru import logger

from staker.config import StakerSettings, VaultConfig
from staker.service import VaultService
from staker.signer import sign_psbt
from staker.vault import StakingRequest, VaultOrchestrator
from vaultcore.chain import ChainType, DestinationChain, decode_chain, encode_chain
from vaultcore.errors import VaultError
from vaultcore.models import AddressFallback, NetworkType
from vaultwallet.wallet.address import classify_address as classify
from vaultwallet.wallet.psbt import Psbt

app = typer.Typer(
    name="vault-staker",
    help="Vault staker - Build and sign Bitcoin vault staking transactions",
    add_completion=False,
)


def setup_logging(level: str) -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def parse_network(network: str) -> NetworkType:
    try:
        return NetworkType(network)
    except ValueError:
        logger.error(f"Invalid network: {network}")
        raise typer.Exit(1)


def parse_hex(value: str, name: str) -> bytes:
    try:
        return bytes.fromhex(value)
    except ValueError:
        logger.error(f"Invalid hex for {name}: {value}")
        raise typer.Exit(1)


def parse_chain_type(value: str) -> ChainType:
    if value.isdigit():
        try:
            return ChainType(int(value))
        except ValueError:
            pass
    else:
        try:
            return ChainType[value.upper()]
        except KeyError:
            pass
    logger.error(f"Invalid chain type: {value} (bitcoin, evm, solana, cosmos or 0-3)")
    raise typer.Exit(1)


@app.command("classify-address")
def classify_address(
    address: Annotated[str, typer.Argument(help="Address to classify")],
    network: Annotated[str, typer.Option("--network", "-n", help="Bitcoin network")] = "mainnet",
    strict: Annotated[
        bool, typer.Option("--strict", help="Fail instead of assuming P2WPKH")
    ] = False,
    log_level: Annotated[str, typer.Option("--log-level", "-l", help="Log level")] = "WARNING",
) -> None:
    """Print the type of an address."""
    setup_logging(log_level)
    fallback = AddressFallback.RAISE if strict else AddressFallback.P2WPKH
    try:
        address_type = classify(address, parse_network(network), fallback)
    except VaultError as e:
        logger.error(str(e))
        raise typer.Exit(1)
    typer.echo(address_type.name)


@app.command("encode-chain")
def encode_chain_command(
    chain_type: Annotated[str, typer.Argument(help="bitcoin | evm | solana | cosmos, or 0-3")],
    chain_id: Annotated[int, typer.Argument(help="Chain id (unsigned 64-bit)")],
) -> None:
    """Print the 8-byte destination chain encoding as hex."""
    setup_logging("WARNING")
    try:
        encoded = encode_chain(parse_chain_type(chain_type), chain_id)
    except (VaultError, ValueError) as e:
        logger.error(str(e))
        raise typer.Exit(1)
    typer.echo(encoded.hex())


@app.command("decode-chain")
def decode_chain_command(
    data: Annotated[str, typer.Argument(help="8-byte destination chain as hex")],
) -> None:
    """Print the chain type and id of an encoded destination chain."""
    setup_logging("WARNING")
    chain = decode_chain(parse_hex(data, "chain"))
    if chain is None:
        logger.error(f"Invalid destination chain: {data}")
        raise typer.Exit(1)
    typer.echo(f"{str(chain.chain_type)} {chain.chain_id}")


@app.command("locking-address")
def locking_address(
    custodians: Annotated[
        list[str], typer.Option("--custodian", "-c", help="Custodian public key (hex), repeatable")
    ],
    quorum: Annotated[int, typer.Option("--quorum", "-q", help="Custodian quorum")],
    user: Annotated[
        str | None, typer.Option("--user", help="User public key (hex); omit for custodian-only")
    ] = None,
    protocol: Annotated[
        str | None, typer.Option("--protocol", help="Protocol public key (hex)")
    ] = None,
    with_custodian_only: Annotated[
        bool,
        typer.Option("--with-custodian-only", help="Add the custodian-only branch to the tree"),
    ] = False,
    network: Annotated[str, typer.Option("--network", "-n", help="Bitcoin network")] = "mainnet",
    log_level: Annotated[str, typer.Option("--log-level", "-l", help="Log level")] = "WARNING",
) -> None:
    """Print the vault address for a key / quorum configuration."""
    setup_logging(log_level)
    settings = StakerSettings()
    config = VaultConfig(
        network=parse_network(network), tag=settings.tag, service_tag=settings.service_tag
    )
    vault = VaultOrchestrator(config)
    custodian_keys = [parse_hex(key, "custodian key") for key in custodians]

    if (user is None) != (protocol is None):
        logger.error("--user and --protocol must be given together")
        raise typer.Exit(1)

    try:
        if user is not None and protocol is not None:
            address = vault.upc_locking_address(
                parse_hex(user, "user key"),
                parse_hex(protocol, "protocol key"),
                custodian_keys,
                quorum,
                with_custodian_only,
            )
        else:
            address = vault.custodian_only_locking_address(custodian_keys, quorum)
    except (VaultError, ValueError) as e:
        logger.error(str(e))
        raise typer.Exit(1)
    typer.echo(address)


@app.command()
def stake(
    address: Annotated[str, typer.Option("--address", "-a", help="Staker funding address")],
    pubkey: Annotated[str, typer.Option("--pubkey", help="Staker compressed public key (hex)")],
    amount: Annotated[int, typer.Option("--amount", help="Staking amount in sats")],
    custodians: Annotated[
        list[str], typer.Option("--custodian", "-c", help="Custodian public key (hex), repeatable")
    ],
    quorum: Annotated[int, typer.Option("--quorum", "-q", help="Custodian quorum")],
    chain_type: Annotated[str, typer.Option("--chain-type", help="Destination chain type")],
    chain_id: Annotated[int, typer.Option("--chain-id", help="Destination chain id")],
    contract: Annotated[str, typer.Option("--contract", help="Destination contract (hex)")],
    recipient: Annotated[str, typer.Option("--recipient", help="Destination recipient (hex)")],
    wif: Annotated[
        str, typer.Option("--wif", envvar="VAULT_WIF", help="Staker private key (WIF)")
    ],
    protocol: Annotated[
        str | None, typer.Option("--protocol", help="Protocol public key; omit for custodian-only")
    ] = None,
    with_custodian_only: Annotated[
        bool,
        typer.Option("--with-custodian-only", help="Add the custodian-only branch to the tree"),
    ] = False,
    fee_rate: Annotated[
        int | None, typer.Option("--fee-rate", help="Fee rate in sat/vB (default: settings)")
    ] = None,
    broadcast: Annotated[
        bool, typer.Option("--broadcast/--no-broadcast", help="Broadcast after mempool check")
    ] = True,
) -> None:
    """Build, sign and broadcast a staking transaction."""
    settings = StakerSettings()
    setup_logging(settings.log_level)

    try:
        request = StakingRequest(
            staker_address=address,
            staker_pubkey=parse_hex(pubkey, "pubkey"),
            amount=amount,
            custodian_keys=tuple(parse_hex(key, "custodian key") for key in custodians),
            quorum=quorum,
            destination_chain=DestinationChain(parse_chain_type(chain_type), chain_id),
            destination_contract=parse_hex(contract, "contract"),
            destination_recipient=parse_hex(recipient, "recipient"),
            protocol_key=parse_hex(protocol, "protocol key") if protocol else None,
            with_custodian_only=with_custodian_only,
            rbf=settings.rbf,
        )
    except (VaultError, ValueError) as e:
        logger.error(str(e))
        raise typer.Exit(1)

    asyncio.run(_run_stake(settings, request, wif, fee_rate or settings.fee_rate, broadcast))


async def _run_stake(
    settings: StakerSettings,
    request: StakingRequest,
    wif: str,
    fee_rate: int,
    broadcast: bool,
) -> None:
    """Run the staking flow."""
    service = VaultService.from_settings(settings)
    try:
        result = await service.stake(request, wif, fee_rate, broadcast)
    except VaultError as e:
        logger.error(str(e))
        raise typer.Exit(1)
    finally:
        await service.close()

    if not result.accepted:
        logger.error(f"Transaction rejected: {result.reject_reason}")
        raise typer.Exit(1)

    typer.echo(result.txid if result.broadcast else result.tx_hex)


@app.command()
def sign(
    psbt: Annotated[str, typer.Argument(help="PSBT as base64")],
    wif: Annotated[str, typer.Option("--wif", envvar="VAULT_WIF", help="Private key (WIF)")],
    network: Annotated[str, typer.Option("--network", "-n", help="Bitcoin network")] = "mainnet",
    finalize: Annotated[
        bool, typer.Option("--finalize/--no-finalize", help="Finalize after signing")
    ] = False,
    log_level: Annotated[str, typer.Option("--log-level", "-l", help="Log level")] = "WARNING",
) -> None:
    """
    Add one signature to a PSBT.

    Prints the updated PSBT, or the raw transaction hex once finalized.
    """
    setup_logging(log_level)
    try:
        parsed = Psbt.from_base64(psbt)
        result = sign_psbt(parsed, wif, parse_network(network), finalize)
    except VaultError as e:
        logger.error(str(e))
        raise typer.Exit(1)

    if not result.is_valid:
        logger.warning("Key was not accepted by every input")

    if finalize:
        typer.echo(parsed.extract_transaction().serialize().hex())
    else:
        typer.echo(parsed.to_base64())


def main() -> None:
    app()


if __name__ == "__main__":
    main()
