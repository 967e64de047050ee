"""
Test suite for the balance ledger

Tests deposits, withdrawals and transfers, the non-negative balance
invariant, conservation of money across transfers and serializability of
concurrent mutations on the same account.
"""

import pytest
import random
import threading
from decimal import Decimal

from ledger_core.accounts import AccountKind, AccountRegistry
from ledger_core.exceptions import (
    AccountNotFound, InsufficientFunds, InvalidArgument, InvariantViolation
)
from ledger_core.ledger import BalanceLedger


def _run_threads(target, count, *args):
    threads = [threading.Thread(target=target, args=args) for _ in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return threads


class TestBalanceLedger:
    """Test single-threaded balance operations"""

    def setup_method(self):
        self.registry = AccountRegistry()
        self.ledger = BalanceLedger(self.registry)
        self.checking = self.registry.create("Maria Silva", "52998224725", AccountKind.CHECKING)
        self.savings = self.registry.create("Joao Souza", "11144477735", AccountKind.SAVINGS)

    def test_deposit(self):
        account = self.ledger.deposit(self.checking.account_number, Decimal('150.50'))

        assert account.balance == Decimal('150.50')
        assert self.ledger.get_balance(self.checking.account_number) == Decimal('150.50')

    def test_withdraw(self):
        self.ledger.deposit(self.checking.account_number, Decimal('100.00'))
        account = self.ledger.withdraw(self.checking.account_number, Decimal('40.00'))

        assert account.balance == Decimal('60.00')

    def test_withdraw_entire_balance(self):
        self.ledger.deposit(self.checking.account_number, Decimal('25.00'))
        account = self.ledger.withdraw(self.checking.account_number, Decimal('25.00'))

        assert account.balance == Decimal('0.00')

    def test_withdraw_insufficient_funds(self):
        self.ledger.deposit(self.checking.account_number, Decimal('100.00'))

        with pytest.raises(InsufficientFunds) as exc_info:
            self.ledger.withdraw(self.checking.account_number, Decimal('100.01'))

        assert exc_info.value.balance == Decimal('100.00')
        assert exc_info.value.amount == Decimal('100.01')
        assert self.ledger.get_balance(self.checking.account_number) == Decimal('100.00')

    def test_unknown_account(self):
        with pytest.raises(AccountNotFound):
            self.ledger.deposit("9999", Decimal('10.00'))
        with pytest.raises(AccountNotFound):
            self.ledger.withdraw("9999", Decimal('10.00'))
        with pytest.raises(AccountNotFound):
            self.ledger.get_balance("9999")

    @pytest.mark.parametrize("amount", [Decimal('0'), Decimal('-5.00'), Decimal('1.001'), 1.5])
    def test_invalid_amounts(self, amount):
        with pytest.raises(InvalidArgument):
            self.ledger.deposit(self.checking.account_number, amount)
        with pytest.raises(InvalidArgument):
            self.ledger.withdraw(self.checking.account_number, amount)
        with pytest.raises(InvalidArgument):
            self.ledger.transfer(self.checking.account_number, self.savings.account_number, amount)

    def test_transfer(self):
        self.ledger.deposit(self.checking.account_number, Decimal('200.00'))
        self.ledger.deposit(self.savings.account_number, Decimal('50.00'))

        self.ledger.transfer(self.checking.account_number, self.savings.account_number, Decimal('75.00'))

        assert self.ledger.get_balance(self.checking.account_number) == Decimal('125.00')
        assert self.ledger.get_balance(self.savings.account_number) == Decimal('125.00')

    def test_transfer_insufficient_funds_changes_nothing(self):
        self.ledger.deposit(self.checking.account_number, Decimal('10.00'))

        with pytest.raises(InsufficientFunds):
            self.ledger.transfer(self.checking.account_number, self.savings.account_number, Decimal('10.01'))

        assert self.ledger.get_balance(self.checking.account_number) == Decimal('10.00')
        assert self.ledger.get_balance(self.savings.account_number) == Decimal('0.00')

    def test_transfer_to_same_account(self):
        self.ledger.deposit(self.checking.account_number, Decimal('10.00'))

        with pytest.raises(InvalidArgument, match="same account"):
            self.ledger.transfer(self.checking.account_number, self.checking.account_number, Decimal('1.00'))

    def test_transfer_missing_accounts(self):
        self.ledger.deposit(self.checking.account_number, Decimal('10.00'))

        with pytest.raises(AccountNotFound) as exc_info:
            self.ledger.transfer(self.checking.account_number, "9999", Decimal('1.00'))
        assert exc_info.value.account_number == "9999"

        with pytest.raises(AccountNotFound):
            self.ledger.transfer("9999", self.checking.account_number, Decimal('1.00'))

        assert self.ledger.get_balance(self.checking.account_number) == Decimal('10.00')

    def test_returned_snapshot_does_not_track_later_changes(self):
        before = self.ledger.deposit(self.checking.account_number, Decimal('10.00'))
        self.ledger.deposit(self.checking.account_number, Decimal('5.00'))

        assert before.balance == Decimal('10.00')
        assert self.registry.get(self.checking.account_number).balance == Decimal('15.00')

    def test_no_floating_point_drift(self):
        number = self.checking.account_number
        self.ledger.deposit(number, Decimal('100.00'))
        self.ledger.withdraw(number, Decimal('40.00'))

        for _ in range(10000):
            self.ledger.deposit(number, Decimal('0.01'))
            self.ledger.withdraw(number, Decimal('0.01'))

        balance = self.ledger.get_balance(number)
        assert balance == Decimal('60.00')
        assert str(balance) == "60.00"

    def test_oversized_amounts_raise_invalid_argument(self):
        self.ledger.deposit(self.checking.account_number, Decimal('10.00'))
        huge = Decimal('1E+30')

        with pytest.raises(InvalidArgument):
            self.ledger.deposit(self.checking.account_number, huge)
        with pytest.raises(InvalidArgument):
            self.ledger.withdraw(self.checking.account_number, huge)
        with pytest.raises(InvalidArgument):
            self.ledger.transfer(self.checking.account_number, self.savings.account_number, huge)

        assert self.ledger.get_balance(self.checking.account_number) == Decimal('10.00')

    def test_balance_cannot_outgrow_cents_precision(self):
        largest = Decimal('99999999999999999999999999.99')
        self.ledger.deposit(self.checking.account_number, largest)
        self.ledger.deposit(self.savings.account_number, largest)

        with pytest.raises(InvalidArgument):
            self.ledger.deposit(self.checking.account_number, largest)
        with pytest.raises(InvalidArgument):
            self.ledger.transfer(self.checking.account_number, self.savings.account_number, Decimal('1.00'))

        assert self.ledger.get_balance(self.checking.account_number) == largest
        assert self.ledger.get_balance(self.savings.account_number) == largest

    def test_invariant_violation_is_raised(self):
        # Corrupt the canonical record to simulate a concurrency bug
        record = self.registry.get_record(self.checking.account_number)
        record.balance = Decimal('-1.00')

        with pytest.raises(InvariantViolation):
            self.ledger.deposit(self.checking.account_number, Decimal('0.50'))


class TestLockOrdering:
    """Test canonical lock order across digit-length boundaries"""

    def test_transfers_between_999_and_1000(self):
        registry = AccountRegistry(account_number_floor=998)
        ledger = BalanceLedger(registry)
        low = registry.create("Ana", "52998224725", AccountKind.CHECKING)
        high = registry.create("Bruno", "11144477735", AccountKind.CHECKING)
        assert (low.account_number, high.account_number) == ("999", "1000")

        ledger.deposit(low.account_number, Decimal('1000.00'))
        ledger.deposit(high.account_number, Decimal('1000.00'))

        def forward():
            for _ in range(300):
                ledger.transfer(low.account_number, high.account_number, Decimal('1.00'))

        def backward():
            for _ in range(300):
                ledger.transfer(high.account_number, low.account_number, Decimal('1.00'))

        threads = [threading.Thread(target=forward), threading.Thread(target=backward)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert not any(thread.is_alive() for thread in threads), "Transfers deadlocked"
        assert ledger.get_balance(low.account_number) == Decimal('1000.00')
        assert ledger.get_balance(high.account_number) == Decimal('1000.00')


class TestConcurrentMutations:
    """Test serializability and conservation under concurrent access"""

    def setup_method(self):
        self.registry = AccountRegistry()
        self.ledger = BalanceLedger(self.registry)

    def test_concurrent_withdrawals_never_overdraw(self):
        account = self.registry.create("Maria Silva", "52998224725", AccountKind.CHECKING)
        self.ledger.deposit(account.account_number, Decimal('100.00'))

        succeeded = []
        rejected = []
        errors = []
        barrier = threading.Barrier(20)

        def withdraw():
            barrier.wait()
            try:
                self.ledger.withdraw(account.account_number, Decimal('10.00'))
                succeeded.append(1)
            except InsufficientFunds:
                rejected.append(1)
            except Exception as e:
                errors.append(e)

        threads = _run_threads(withdraw, 20)

        assert not any(thread.is_alive() for thread in threads)
        assert len(errors) == 0, f"Errors occurred: {errors}"
        assert len(succeeded) == 10
        assert len(rejected) == 10
        assert self.ledger.get_balance(account.account_number) == Decimal('0.00')

    def test_concurrent_uneven_withdrawals_match_a_serial_order(self):
        account = self.registry.create("Maria Silva", "52998224725", AccountKind.CHECKING)
        self.ledger.deposit(account.account_number, Decimal('100.00'))

        amounts = [Decimal('30.00'), Decimal('45.00'), Decimal('25.00'), Decimal('60.00'), Decimal('15.00')]
        succeeded = []
        lock = threading.Lock()
        barrier = threading.Barrier(len(amounts))

        def withdraw(amount):
            barrier.wait()
            try:
                self.ledger.withdraw(account.account_number, amount)
                with lock:
                    succeeded.append(amount)
            except InsufficientFunds:
                pass

        threads = [threading.Thread(target=withdraw, args=(amount,)) for amount in amounts]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        final = self.ledger.get_balance(account.account_number)
        assert final >= 0
        assert final == Decimal('100.00') - sum(succeeded, Decimal('0'))
        # Every rejected withdrawal must have been larger than the balance left at the end
        for amount in amounts:
            if amount not in succeeded:
                assert amount > final

    def test_concurrent_deposits_lose_no_updates(self):
        account = self.registry.create("Maria Silva", "52998224725", AccountKind.CHECKING)

        def deposit():
            for _ in range(200):
                self.ledger.deposit(account.account_number, Decimal('0.01'))

        _run_threads(deposit, 10)

        assert self.ledger.get_balance(account.account_number) == Decimal('20.00')

    def test_random_transfers_conserve_total(self):
        accounts = [
            self.registry.create(f"Holder {i}", "52998224725", AccountKind.CHECKING)
            for i in range(6)
        ]
        for account in accounts:
            self.ledger.deposit(account.account_number, Decimal('500.00'))
        numbers = [account.account_number for account in accounts]
        errors = []

        def worker(seed):
            rng = random.Random(seed)
            for _ in range(300):
                source, destination = rng.sample(numbers, 2)
                amount = Decimal(rng.randint(1, 20000)).scaleb(-2)
                try:
                    self.ledger.transfer(source, destination, amount)
                except InsufficientFunds:
                    pass
                except Exception as e:
                    errors.append(e)

        threads = [threading.Thread(target=worker, args=(seed,)) for seed in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)

        assert not any(thread.is_alive() for thread in threads), "Transfers deadlocked"
        assert len(errors) == 0, f"Errors occurred: {errors}"
        balances = [self.ledger.get_balance(number) for number in numbers]
        assert all(balance >= 0 for balance in balances)
        assert sum(balances, Decimal('0')) == Decimal('3000.00')

    def test_readers_never_see_money_in_flight(self):
        a = self.registry.create("Ana", "52998224725", AccountKind.CHECKING)
        b = self.registry.create("Bruno", "11144477735", AccountKind.CHECKING)
        self.ledger.deposit(a.account_number, Decimal('100.00'))
        records = sorted(
            (self.registry.get_record(a.account_number), self.registry.get_record(b.account_number)),
            key=lambda r: (len(r.account_number), r.account_number)
        )
        stop = threading.Event()
        observed = []

        def mover():
            for i in range(500):
                if i % 2 == 0:
                    self.ledger.transfer(a.account_number, b.account_number, Decimal('100.00'))
                else:
                    self.ledger.transfer(b.account_number, a.account_number, Decimal('100.00'))
            stop.set()

        def reader():
            while True:
                # Same canonical order as the ledger
                with records[0].lock:
                    with records[1].lock:
                        observed.append(records[0].balance + records[1].balance)
                if stop.is_set():
                    break

        threads = [threading.Thread(target=mover), threading.Thread(target=reader)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert observed
        assert set(observed) == {Decimal('100.00')}
