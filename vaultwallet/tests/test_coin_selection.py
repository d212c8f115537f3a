"""
Tests for coin selection and fee estimation.
"""

import pytest

from vaultcore.errors import InsufficientFunds
from vaultcore.models import UTXO
from vaultwallet.wallet.coin_selection import estimate_fee, select_utxos


def _utxo(value: int, n: int = 0) -> UTXO:
    return UTXO(txid=f"{n:064x}", vout=n, value=value)


class TestEstimateFee:
    def test_formula(self):
        assert estimate_fee(1, 1, 3) == 148 + 3 * 34 + 11
        assert estimate_fee(10, 2, 2) == 10 * (2 * 148 + 2 * 34 + 11)

    def test_zero_rate(self):
        assert estimate_fee(0, 5, 5) == 0


class TestSelectUtxos:
    def test_single_utxo_staking_fee(self):
        selection = select_utxos([_utxo(10_000_000)], 100_000, n_outputs=3, fee_rate=1)
        assert selection.fee == 261
        assert selection.utxos == (_utxo(10_000_000),)
        assert selection.total_value == 10_000_000

    def test_largest_first(self):
        utxos = [_utxo(1_000, 0), _utxo(50_000, 1), _utxo(20_000, 2)]
        selection = select_utxos(utxos, 30_000, n_outputs=2, fee_rate=1)
        assert [u.value for u in selection.utxos] == [50_000]

    def test_selection_is_prefix_of_sorted(self):
        utxos = [_utxo(v, i) for i, v in enumerate([3_000, 9_000, 1_000, 7_000, 5_000])]
        selection = select_utxos(utxos, 15_000, n_outputs=2, fee_rate=2)

        ordered = sorted(utxos, key=lambda u: u.value, reverse=True)
        assert list(selection.utxos) == ordered[: len(selection.utxos)]
        assert selection.total_value >= 15_000 + selection.fee

    def test_fee_recomputed_per_input(self):
        # the first UTXO covers the amount but not the fee
        utxos = [_utxo(10_000, 0), _utxo(5_000, 1)]
        selection = select_utxos(utxos, 9_900, n_outputs=2, fee_rate=1)

        assert len(selection.utxos) == 2
        assert selection.fee == estimate_fee(1, 2, 2)

    def test_exact_cover(self):
        fee = estimate_fee(5, 1, 2)
        selection = select_utxos([_utxo(50_000 + fee)], 50_000, n_outputs=2, fee_rate=5)
        assert selection.fee == fee
        assert selection.total_value == 50_000 + fee

    def test_ties_keep_input_order(self):
        utxos = [_utxo(5_000, 7), _utxo(5_000, 3), _utxo(5_000, 9)]
        selection = select_utxos(utxos, 4_000, n_outputs=1, fee_rate=1)
        assert selection.utxos == (_utxo(5_000, 7),)

    def test_no_utxos(self):
        with pytest.raises(InsufficientFunds, match="Insufficient funds"):
            select_utxos([], 1_000, n_outputs=2, fee_rate=1)

    def test_not_enough(self):
        utxos = [_utxo(1_000, 0), _utxo(2_000, 1)]
        with pytest.raises(InsufficientFunds, match="Insufficient funds"):
            select_utxos(utxos, 3_000, n_outputs=2, fee_rate=1)

    def test_does_not_mutate_input(self):
        utxos = [_utxo(1_000, 0), _utxo(9_000, 1)]
        select_utxos(utxos, 500, n_outputs=2, fee_rate=1)
        assert [u.value for u in utxos] == [1_000, 9_000]
