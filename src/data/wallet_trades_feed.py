from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
import asyncio
import json
import logging

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solders.pubkey import Pubkey
from solders.signature import Signature

from core.errors import FetchError, ParseError
from core.types import TradeEvent, TradeSide

SOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
QUOTE_MINTS = (SOL_MINT, USDC_MINT)

DEX_PROGRAMS = {
    "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4": "Jupiter",
    "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8": "Raydium",
    "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc": "Orca",
    "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P": "Pump.fun",
}


def _token_amount(balance: Dict) -> Decimal:
    ui = balance.get("uiTokenAmount") or {}
    try:
        raw = int(ui.get("amount", "0"))
        decimals = int(ui.get("decimals", 0))
    except (TypeError, ValueError) as e:
        raise ParseError(f"Invalid token amount: {ui}") from e
    return Decimal(raw).scaleb(-decimals)


def _balance_changes(wallet: str, pre: List[Dict], post: List[Dict]) -> List[Tuple[str, Decimal]]:
    """Net token balance change per mint for accounts owned by `wallet`"""
    totals: Dict[str, Decimal] = {}
    for balance in pre:
        if balance.get("owner") == wallet:
            totals[balance["mint"]] = totals.get(balance["mint"], Decimal("0")) - _token_amount(balance)
    for balance in post:
        if balance.get("owner") == wallet:
            totals[balance["mint"]] = totals.get(balance["mint"], Decimal("0")) + _token_amount(balance)
    return [(mint, change) for mint, change in totals.items() if change != 0]


def detect_dex(message: Dict) -> str:
    for instruction in message.get("instructions") or []:
        program = instruction.get("programId", "")
        if program in DEX_PROGRAMS:
            return DEX_PROGRAMS[program]
        if "pump" in program.lower():
            return "Pump.fun"
    return "Unknown"


def parse_trade(tx: Dict, wallet: str) -> Optional[TradeEvent]:
    """
    Decode a jsonParsed transaction into a swap by `wallet`, or None.

    A swap is a successful transaction that moves exactly two of the
    wallet's token balances, one down and one up. Spending SOL or USDC is
    a buy of the other mint, anything else is a sell of the spent mint.
    """
    if not tx:
        return None
    meta = tx.get("meta")
    if meta is None:
        raise ParseError("Transaction missing metadata")
    if meta.get("err") is not None:
        return None

    changes = _balance_changes(wallet, meta.get("preTokenBalances") or [], meta.get("postTokenBalances") or [])
    if len(changes) != 2:
        return None

    spent = [c for c in changes if c[1] < 0]
    received = [c for c in changes if c[1] > 0]
    if len(spent) != 1 or len(received) != 1:
        return None
    mint_in, amount_in = spent[0][0], -spent[0][1]
    mint_out, amount_out = received[0]

    if mint_in in QUOTE_MINTS:
        side, mint = TradeSide.BUY, mint_out
        price = amount_in / amount_out
    else:
        side, mint = TradeSide.SELL, mint_in
        price = amount_out / amount_in

    transaction = tx.get("transaction") or {}
    signatures = transaction.get("signatures") or ["unknown"]
    block_time = tx.get("blockTime")
    timestamp = datetime.fromtimestamp(block_time, tz=timezone.utc) if block_time else datetime.now(timezone.utc)

    return TradeEvent(
        wallet=wallet,
        mint=mint,
        side=side,
        amount_in=amount_in,
        amount_out=amount_out,
        price=price,
        timestamp=timestamp,
        signature=signatures[0],
        dex=detect_dex(transaction.get("message") or {}),
    )


class WalletTradesFeed:
    """Recent swaps for a wallet, decoded from Solana RPC transaction history"""

    def __init__(self, rpc_url: str, request_delay_seconds: float = 0.1, logger: logging.Logger = None):
        self.client = AsyncClient(rpc_url)
        self.request_delay_seconds = request_delay_seconds
        self.logger = logger or logging.getLogger(__name__)

    async def close(self):
        await self.client.close()

    async def fetch_trade_events(self, wallet: str, limit: int = 50) -> List[TradeEvent]:
        try:
            response = await self.client.get_signatures_for_address(
                Pubkey.from_string(wallet), limit=limit, commitment=Confirmed
            )
        except ValueError as e:
            raise ParseError(f"Invalid wallet address {wallet}: {str(e)}") from e
        except Exception as e:
            raise FetchError(f"Failed to fetch signatures for {wallet}: {str(e)}") from e

        trades = []
        for status in response.value:
            if status.err is not None:
                continue
            try:
                tx = await self._get_transaction(status.signature)
                trade = parse_trade(tx, wallet)
                if trade:
                    trades.append(trade)
            except Exception as e:
                self.logger.warning(f"Skipping transaction {status.signature} for {wallet}: {str(e)}")
            if self.request_delay_seconds:
                await asyncio.sleep(self.request_delay_seconds)

        self.logger.debug(f"Extracted {len(trades)} trades from {len(response.value)} transactions for {wallet}")
        return trades

    async def _get_transaction(self, signature: Signature) -> Optional[Dict]:
        response = await self.client.get_transaction(
            signature,
            encoding="jsonParsed",
            commitment=Confirmed,
            max_supported_transaction_version=0,
        )
        raw = json.loads(response.to_json())
        return raw.get("result", raw)
