"""
Treasury Vesting Test Suite

Coverage:
  - TreasuryVester: authorization, cliff, linear release, bonus, rescue
  - TreasuryVesterFactory: vest / batch_vest, notify_funds_for_all ordering,
    claim / claim_all isolation, rescue_funds / rescue_factory_funds
"""

import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from route.chain import Chain
from route.config import ChainConfig
from route.constants import ZERO_ADDRESS
from route.crypto import normalize_address
from route.exceptions import (
    DuplicateRecipientError,
    InvalidAddressError,
    InvalidScheduleError,
    LengthMismatchError,
    NoSuchScheduleError,
    NotFundedError,
    TooEarlyError,
    UnauthorizedError,
)
from route.tokens import RouteToken, expand_to_18_decimals
from route.vesting import (
    ClaimedEvent,
    ClaimReport,
    RecipientChangedEvent,
    TreasuryVester,
    TreasuryVesterFactory,
)


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

GENESIS = 1_700_000_000
YEAR = 60 * 60 * 24 * 365

WALLET = normalize_address("0x" + "a1" * 20)
WALLET2 = normalize_address("0x" + "b2" * 20)
TREASURY = normalize_address("0x" + "c3" * 20)
OTHER = normalize_address("0x" + "d4" * 20)

VESTING_AMOUNT = expand_to_18_decimals(100)


def make_env():
    """Chain plus a Route token whose supply sits on WALLET."""
    chain = Chain(ChainConfig(genesis_time=GENESIS))
    token = RouteToken(chain, WALLET)
    return chain, token


def schedule_times(chain):
    begin = chain.timestamp + 60
    return begin, begin + YEAR


def make_vester(chain, token, bonus=0, fund=True):
    """
    Standalone vester paying TREASURY, rescuable by WALLET2.

    Returns (vester, begin, end).
    """
    begin, end = schedule_times(chain)
    vester = TreasuryVester(
        chain,
        WALLET,
        factory=WALLET2,
        token=token.address,
        recipient=TREASURY,
        amount=VESTING_AMOUNT,
        cliff=begin,
        end=end,
        bonus=bonus,
    )
    if fund:
        token.transfer(WALLET, vester.address, VESTING_AMOUNT)
    return vester, begin, end


def make_factory(chain, token):
    return TreasuryVesterFactory(chain, WALLET, token.address)


# ══════════════════════════════════════════════════════════════════════
#  TREASURY VESTER
# ══════════════════════════════════════════════════════════════════════


class TestVesterValidation:

    def test_end_before_cliff(self):
        chain, token = make_env()
        with pytest.raises(InvalidScheduleError):
            TreasuryVester(chain, WALLET, WALLET2, token.address, TREASURY,
                           VESTING_AMOUNT, cliff=GENESIS + 10, end=GENESIS + 10)

    def test_cliff_before_begin(self):
        chain, token = make_env()
        with pytest.raises(InvalidScheduleError):
            TreasuryVester(chain, WALLET, WALLET2, token.address, TREASURY,
                           VESTING_AMOUNT, cliff=GENESIS, end=GENESIS + 100,
                           begin=GENESIS + 1)

    def test_bonus_out_of_range(self):
        chain, token = make_env()
        with pytest.raises(InvalidScheduleError):
            TreasuryVester(chain, WALLET, WALLET2, token.address, TREASURY,
                           VESTING_AMOUNT, cliff=GENESIS, end=GENESIS + 100, bonus=101)

    def test_zero_amount(self):
        chain, token = make_env()
        with pytest.raises(InvalidScheduleError):
            TreasuryVester(chain, WALLET, WALLET2, token.address, TREASURY,
                           0, cliff=GENESIS, end=GENESIS + 100)

    @pytest.mark.parametrize("field, value", [
        ("bonus", 12.5),
        ("bonus", True),
        ("cliff", float(GENESIS)),
        ("end", "1700000100"),
        ("begin", GENESIS - 0.5),
    ])
    def test_non_integer_fields_rejected(self, field, value):
        chain, token = make_env()
        kwargs = dict(cliff=GENESIS, end=GENESIS + 100, bonus=0, begin=GENESIS)
        kwargs[field] = value
        with pytest.raises(InvalidScheduleError, match=field):
            TreasuryVester(chain, WALLET, WALLET2, token.address, TREASURY,
                           VESTING_AMOUNT, **kwargs)

    def test_zero_address_recipient(self):
        chain, token = make_env()
        with pytest.raises(InvalidAddressError):
            TreasuryVester(chain, WALLET, WALLET2, token.address, ZERO_ADDRESS,
                           VESTING_AMOUNT, cliff=GENESIS, end=GENESIS + 100)

    def test_begin_defaults_to_cliff(self):
        chain, token = make_env()
        vester, begin, _ = make_vester(chain, token)
        assert vester.begin == vester.cliff == begin


class TestVester:
    """Single-schedule behaviour."""

    def test_set_recipient_fail(self):
        chain, token = make_env()
        vester, _, _ = make_vester(chain, token)
        with pytest.raises(UnauthorizedError, match="TreasuryVester::setRecipient: unauthorized"):
            vester.set_recipient(WALLET, WALLET)

    def test_set_recipient(self):
        chain, token = make_env()
        vester, _, end = make_vester(chain, token)
        event = vester.set_recipient(TREASURY, OTHER)
        assert isinstance(event, RecipientChangedEvent)
        assert vester.recipient == OTHER

        chain.mine_block(end)
        vester.claim()
        assert token.balance_of(OTHER) == VESTING_AMOUNT

    def test_set_recipient_zero_address(self):
        chain, token = make_env()
        vester, _, _ = make_vester(chain, token)
        with pytest.raises(InvalidAddressError):
            vester.set_recipient(TREASURY, ZERO_ADDRESS)
        assert vester.recipient == TREASURY

    def test_claim_fail_before_cliff(self):
        chain, token = make_env()
        vester, begin, _ = make_vester(chain, token)
        with pytest.raises(TooEarlyError, match="TreasuryVester::claim: not time yet"):
            vester.claim()
        chain.mine_block(begin - 10)
        with pytest.raises(TooEarlyError, match="TreasuryVester::claim: not time yet"):
            vester.claim()

    def test_rescue_fail(self):
        chain, token = make_env()
        vester, _, _ = make_vester(chain, token)
        with pytest.raises(
            UnauthorizedError,
            match="TreasuryVester::onlyFactory: caller is not factory address",
        ):
            vester.rescue(WALLET)

    def test_claim_half(self):
        chain, token = make_env()
        vester, begin, end = make_vester(chain, token)
        chain.mine_block(begin + (end - begin) // 2)
        vester.claim()
        half = VESTING_AMOUNT // 2
        assert abs(half - token.balance_of(TREASURY)) <= half // 10000

    def test_claim_all(self):
        chain, token = make_env()
        vester, _, end = make_vester(chain, token)
        chain.mine_block(end)
        assert vester.claim() == VESTING_AMOUNT
        assert token.balance_of(TREASURY) == VESTING_AMOUNT
        assert token.balance_of(vester.address) == 0

    def test_claim_with_bonus(self):
        chain, token = make_env()
        bonus = 30
        vester, begin, end = make_vester(chain, token, bonus=bonus)
        chain.mine_block(begin + (end - begin) // 2)
        vester.claim()
        bonus_amt = VESTING_AMOUNT * bonus // 100
        expected = bonus_amt + (VESTING_AMOUNT - bonus_amt) // 2
        assert abs(expected - token.balance_of(TREASURY)) <= expected // 10000

    def test_bonus_paid_once(self):
        chain, token = make_env()
        vester, begin, end = make_vester(chain, token, bonus=30)
        chain.mine_block(begin)
        first = vester.claim()
        assert first == VESTING_AMOUNT * 30 // 100
        assert vester.bonus_paid

        chain.mine_block(end)
        vester.claim()
        assert vester.claimed == VESTING_AMOUNT
        assert token.balance_of(TREASURY) == VESTING_AMOUNT

        claims = [e for e in vester.events if isinstance(e, ClaimedEvent)]
        assert [c.bonus_included for c in claims] == [True, False]

    def test_claim_after_fully_paid_returns_zero(self):
        chain, token = make_env()
        vester, _, end = make_vester(chain, token)
        chain.mine_block(end)
        vester.claim()
        chain.advance(100)
        assert vester.claim() == 0
        assert vester.is_settled

    def test_claims_are_cumulative(self):
        chain, token = make_env()
        vester, begin, end = make_vester(chain, token)
        for t in (begin + 1000, begin + YEAR // 3, begin + YEAR // 2, end + 5):
            chain.mine_block(t)
            vester.claim()
            assert vester.claimed == token.balance_of(TREASURY)
            assert vester.claimed <= VESTING_AMOUNT
        assert vester.claimed == VESTING_AMOUNT

    def test_unfunded_claim(self):
        chain, token = make_env()
        vester, begin, _ = make_vester(chain, token, fund=False)
        chain.mine_block(begin + 10)
        with pytest.raises(NotFundedError):
            vester.claim()

    def test_rescue_by_factory(self):
        chain, token = make_env()
        vester, begin, _ = make_vester(chain, token)
        assert vester.rescue(WALLET2) == VESTING_AMOUNT
        assert token.balance_of(WALLET2) == VESTING_AMOUNT
        assert not vester.is_active

        chain.mine_block(begin + 10)
        with pytest.raises(NotFundedError):
            vester.claim()

    def test_vested_amount_curve(self):
        chain, token = make_env()
        vester, begin, end = make_vester(chain, token, bonus=10)
        assert vester.vested_amount(begin - 1) == 0
        assert vester.vested_amount(begin) == vester.bonus_amount
        assert vester.vested_amount(end) == VESTING_AMOUNT
        assert vester.vested_amount(end + YEAR) == VESTING_AMOUNT

    def test_to_dict(self):
        chain, token = make_env()
        vester, _, _ = make_vester(chain, token)
        d = vester.to_dict()
        assert d["recipient"] == TREASURY
        assert d["amount"] == str(VESTING_AMOUNT)
        assert d["funded"] is True


# ══════════════════════════════════════════════════════════════════════
#  TREASURY VESTER FACTORY
# ══════════════════════════════════════════════════════════════════════


class TestFactoryVest:

    def test_vest_and_notify(self):
        chain, token = make_env()
        factory = make_factory(chain, token)
        begin, end = schedule_times(chain)
        vester = factory.vest(WALLET, TREASURY, VESTING_AMOUNT, begin, end, 0)
        assert not vester.funded

        token.transfer(WALLET, factory.address, VESTING_AMOUNT)
        allocated = factory.notify_funds_for_all()
        assert allocated == {TREASURY: VESTING_AMOUNT}
        assert vester.funded
        assert token.balance_of(vester.address) == VESTING_AMOUNT
        assert factory.undistributed == 0

    def test_vest_not_owner(self):
        chain, token = make_env()
        factory = make_factory(chain, token)
        begin, end = schedule_times(chain)
        with pytest.raises(UnauthorizedError):
            factory.vest(OTHER, TREASURY, VESTING_AMOUNT, begin, end)

    def test_vest_zero_address_recipient(self):
        chain, token = make_env()
        factory = make_factory(chain, token)
        begin, end = schedule_times(chain)
        with pytest.raises(InvalidAddressError):
            factory.vest(WALLET, ZERO_ADDRESS, VESTING_AMOUNT, begin, end)
        assert factory.recipients == []

    def test_vest_fractional_bonus_creates_nothing(self):
        chain, token = make_env()
        factory = make_factory(chain, token)
        begin, end = schedule_times(chain)
        token.transfer(WALLET, factory.address, VESTING_AMOUNT)
        with pytest.raises(InvalidScheduleError):
            factory.vest(WALLET, TREASURY, VESTING_AMOUNT, begin, end, 12.5)
        assert factory.notify_funds_for_all() == {}
        assert factory.undistributed == VESTING_AMOUNT

    def test_duplicate_recipient(self):
        chain, token = make_env()
        factory = make_factory(chain, token)
        begin, end = schedule_times(chain)
        factory.vest(WALLET, TREASURY, VESTING_AMOUNT, begin, end)
        with pytest.raises(DuplicateRecipientError):
            factory.vest(WALLET, TREASURY, VESTING_AMOUNT, begin, end)

    def test_settled_schedule_can_be_replaced(self):
        chain, token = make_env()
        factory = make_factory(chain, token)
        begin, end = schedule_times(chain)
        first = factory.vest(WALLET, TREASURY, VESTING_AMOUNT, begin, end)
        factory.rescue_funds(WALLET, TREASURY)

        second = factory.vest(WALLET, TREASURY, VESTING_AMOUNT, end, end + YEAR)
        assert factory.schedule(TREASURY) is second
        assert second.address != first.address
        assert factory.recipients == [TREASURY]

    def test_no_such_schedule(self):
        chain, token = make_env()
        factory = make_factory(chain, token)
        with pytest.raises(NoSuchScheduleError):
            factory.claim(TREASURY)

    def test_batch_vest(self):
        chain, token = make_env()
        factory = make_factory(chain, token)
        begin, end = schedule_times(chain)
        factory.batch_vest(
            WALLET,
            [TREASURY, WALLET2],
            [VESTING_AMOUNT, VESTING_AMOUNT],
            [begin, begin],
            [end, end],
            [0, 10],
        )
        token.transfer(WALLET, factory.address, expand_to_18_decimals(200))
        factory.notify_funds_for_all()

        chain.mine_block(end)
        report = factory.claim_all()
        assert report.ok
        assert token.balance_of(TREASURY) == VESTING_AMOUNT
        assert token.balance_of(WALLET2) == VESTING_AMOUNT

    def test_batch_vest_length_mismatch(self):
        chain, token = make_env()
        factory = make_factory(chain, token)
        begin, end = schedule_times(chain)
        with pytest.raises(LengthMismatchError):
            factory.batch_vest(WALLET, [TREASURY, WALLET2], [VESTING_AMOUNT],
                               [begin], [end], [0])

    def test_batch_vest_is_all_or_nothing(self):
        chain, token = make_env()
        factory = make_factory(chain, token)
        begin, end = schedule_times(chain)
        with pytest.raises(InvalidScheduleError):
            factory.batch_vest(
                WALLET,
                [TREASURY, WALLET2],
                [VESTING_AMOUNT, VESTING_AMOUNT],
                [begin, begin],
                [end, begin],  # second schedule ends at its cliff
                [0, 0],
            )
        assert factory.recipients == []
        assert not factory.has_schedule(TREASURY)


class TestFactoryFunding:

    def test_notify_stops_at_first_uncovered(self):
        chain, token = make_env()
        factory = make_factory(chain, token)
        begin, end = schedule_times(chain)
        factory.vest(WALLET, TREASURY, VESTING_AMOUNT, begin, end)
        factory.vest(WALLET, WALLET2, expand_to_18_decimals(300), begin, end)
        factory.vest(WALLET, OTHER, expand_to_18_decimals(50), begin, end)

        token.transfer(WALLET, factory.address, expand_to_18_decimals(200))
        allocated = factory.notify_funds_for_all()

        assert allocated == {TREASURY: VESTING_AMOUNT}
        assert factory.schedule(TREASURY).funded
        assert not factory.schedule(WALLET2).funded
        assert not factory.schedule(OTHER).funded
        assert factory.undistributed == VESTING_AMOUNT

    def test_notify_is_idempotent(self):
        chain, token = make_env()
        factory = make_factory(chain, token)
        begin, end = schedule_times(chain)
        factory.vest(WALLET, TREASURY, VESTING_AMOUNT, begin, end)
        token.transfer(WALLET, factory.address, expand_to_18_decimals(150))
        factory.notify_funds_for_all()
        assert factory.notify_funds_for_all() == {}
        assert factory.undistributed == expand_to_18_decimals(50)

    def test_notify_tops_up_partial_balance(self):
        chain, token = make_env()
        factory = make_factory(chain, token)
        begin, end = schedule_times(chain)
        vester = factory.vest(WALLET, TREASURY, VESTING_AMOUNT, begin, end)
        token.transfer(WALLET, vester.address, expand_to_18_decimals(40))
        token.transfer(WALLET, factory.address, expand_to_18_decimals(60))
        assert factory.notify_funds_for_all() == {TREASURY: expand_to_18_decimals(60)}
        assert token.balance_of(vester.address) == VESTING_AMOUNT


class TestFactoryClaims:

    def test_claim(self):
        chain, token = make_env()
        factory = make_factory(chain, token)
        begin, end = schedule_times(chain)
        factory.vest(WALLET, TREASURY, VESTING_AMOUNT, begin, end)
        token.transfer(WALLET, factory.address, VESTING_AMOUNT)
        factory.notify_funds_for_all()
        chain.mine_block(end)
        factory.claim(TREASURY)
        assert token.balance_of(TREASURY) == VESTING_AMOUNT

    def test_claim_all_sequential_vests(self):
        chain, token = make_env()
        factory = make_factory(chain, token)

        begin, end = schedule_times(chain)
        factory.vest(WALLET, TREASURY, VESTING_AMOUNT, begin, end)
        token.transfer(WALLET, factory.address, VESTING_AMOUNT)

        chain.advance(13)
        begin2, end2 = schedule_times(chain)
        factory.vest(WALLET, WALLET2, VESTING_AMOUNT, begin2, end2)
        token.transfer(WALLET, factory.address, VESTING_AMOUNT)

        factory.notify_funds_for_all()
        chain.mine_block(end2)
        report = factory.claim_all()
        assert isinstance(report, ClaimReport)
        assert report.total_claimed == expand_to_18_decimals(200)
        assert token.balance_of(TREASURY) == VESTING_AMOUNT
        assert token.balance_of(WALLET2) == VESTING_AMOUNT

    def test_claim_all_isolates_failures(self):
        chain, token = make_env()
        factory = make_factory(chain, token)
        begin, end = schedule_times(chain)
        factory.vest(WALLET, TREASURY, VESTING_AMOUNT, begin, end)
        factory.vest(WALLET, WALLET2, VESTING_AMOUNT, begin, end)
        token.transfer(WALLET, factory.address, VESTING_AMOUNT)
        factory.notify_funds_for_all()  # only TREASURY is funded

        chain.mine_block(end)
        report = factory.claim_all()
        assert not report.ok
        assert report.claimed == {TREASURY: VESTING_AMOUNT}
        assert isinstance(report.failures[WALLET2], NotFundedError)
        assert token.balance_of(TREASURY) == VESTING_AMOUNT

        d = report.to_dict()
        assert d["totalClaimed"] == str(VESTING_AMOUNT)
        assert "NotFundedError" in d["failures"][WALLET2]

    def test_claim_all_before_cliff(self):
        chain, token = make_env()
        factory = make_factory(chain, token)
        begin, end = schedule_times(chain)
        factory.vest(WALLET, TREASURY, VESTING_AMOUNT, begin, end)
        token.transfer(WALLET, factory.address, VESTING_AMOUNT)
        factory.notify_funds_for_all()
        report = factory.claim_all()
        assert isinstance(report.failures[TREASURY], TooEarlyError)
        assert report.total_claimed == 0


class TestFactoryRescue:

    def test_rescue(self):
        chain, token = make_env()
        factory = make_factory(chain, token)
        begin, end = schedule_times(chain)
        factory.vest(WALLET, TREASURY, VESTING_AMOUNT, begin, end)
        token.transfer(WALLET, factory.address, VESTING_AMOUNT)
        factory.notify_funds_for_all()
        assert token.balance_of(factory.address) == 0

        factory.rescue_funds(WALLET, TREASURY)
        assert token.balance_of(factory.address) == VESTING_AMOUNT

        wallet_before = token.balance_of(WALLET)
        assert factory.rescue_factory_funds(WALLET) == VESTING_AMOUNT
        assert token.balance_of(WALLET) - wallet_before == VESTING_AMOUNT
        assert token.balance_of(factory.address) == 0

    def test_rescue_not_owner(self):
        chain, token = make_env()
        factory = make_factory(chain, token)
        begin, end = schedule_times(chain)
        factory.vest(WALLET, TREASURY, VESTING_AMOUNT, begin, end)
        with pytest.raises(UnauthorizedError):
            factory.rescue_funds(OTHER, TREASURY)
        with pytest.raises(UnauthorizedError):
            factory.rescue_factory_funds(OTHER)

    def test_rescued_schedule_cannot_claim(self):
        chain, token = make_env()
        factory = make_factory(chain, token)
        begin, end = schedule_times(chain)
        factory.vest(WALLET, TREASURY, VESTING_AMOUNT, begin, end)
        token.transfer(WALLET, factory.address, VESTING_AMOUNT)
        factory.notify_funds_for_all()
        factory.rescue_funds(WALLET, TREASURY)

        chain.mine_block(end)
        with pytest.raises(NotFundedError):
            factory.claim(TREASURY)
        # rescued funds are not reallocated to the rescued schedule
        assert factory.notify_funds_for_all() == {}

    def test_to_dict(self):
        chain, token = make_env()
        factory = make_factory(chain, token)
        begin, end = schedule_times(chain)
        factory.vest(WALLET, TREASURY, VESTING_AMOUNT, begin, end)
        d = factory.to_dict()
        assert d["owner"] == WALLET
        assert TREASURY in d["schedules"]
