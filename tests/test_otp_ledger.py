import asyncio

import pytest

from app.services.expiry_sweeper import ExpirySweeper
from app.services.otp_ledger import InMemoryExpiringStore, OtpLedger, VerificationGate, generate_otp
from app.utils.errors import ConflictError, UpstreamError


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def store(clock):
    return InMemoryExpiringStore(clock=clock)


@pytest.fixture()
def ledger(store):
    return OtpLedger(store, ttl_seconds=600)


def test_generated_codes_are_six_digits():
    code = generate_otp()
    assert len(code) == 6
    assert code.isdigit()


def test_code_is_single_use(ledger):
    code = ledger.issue("user:1", "verify_email")

    assert ledger.verify("user:1", code, "verify_email") is True
    assert ledger.verify("user:1", code, "verify_email") is False


def test_wrong_code_does_not_consume(ledger):
    code = ledger.issue("user:1", "reset")
    wrong = "000000" if code != "000000" else "111111"

    assert ledger.verify("user:1", wrong, "reset") is False
    assert ledger.verify("user:1", code, "reset") is True


def test_code_expires_after_ttl(ledger, clock):
    code = ledger.issue("user:1", "reset")
    clock.advance(601)

    assert ledger.verify("user:1", code, "reset") is False


def test_purpose_and_subject_are_isolated(ledger):
    code = ledger.issue("user:1", "verify_phone")

    assert ledger.verify("user:1", code, "verify_email") is False
    assert ledger.verify("user:2", code, "verify_phone") is False
    assert ledger.verify("user:1", code, "verify_phone") is True


def test_reissue_replaces_previous_code(ledger):
    first = ledger.issue("doctor:3", "login")
    second = ledger.issue("doctor:3", "login")

    if first != second:
        assert ledger.verify("doctor:3", first, "login") is False
    assert ledger.verify("doctor:3", second, "login") is True


def test_require_raises_on_bad_code(ledger):
    ledger.issue("admin", "login")

    with pytest.raises(ConflictError):
        ledger.require("admin", "not-a-code", "login")


def test_verify_all_is_all_or_nothing(ledger):
    phone = ledger.issue("user:5", "verify_phone")
    email = ledger.issue("user:5", "verify_email")
    wrong_email = "000000" if email != "000000" else "111111"

    assert ledger.verify_all("user:5", {"verify_phone": phone, "verify_email": wrong_email}) is False
    # Neither code was consumed by the failed attempt
    assert ledger.has_pending("user:5", "verify_phone")
    assert ledger.has_pending("user:5", "verify_email")

    assert ledger.verify_all("user:5", {"verify_phone": phone, "verify_email": email}) is True
    assert not ledger.has_pending("user:5", "verify_phone")
    assert not ledger.has_pending("user:5", "verify_email")


def test_issue_and_send_discards_code_when_delivery_fails(ledger):
    async def broken_delivery(code):
        raise RuntimeError("smtp down")

    with pytest.raises(UpstreamError):
        asyncio.run(ledger.issue_and_send("user:9", "reset", broken_delivery))

    assert not ledger.has_pending("user:9", "reset")


def test_issue_and_send_delivers_the_stored_code(ledger):
    delivered = []

    async def delivery(code):
        delivered.append(code)

    code = asyncio.run(ledger.issue_and_send("user:9", "reset", delivery))

    assert delivered == [code]
    assert ledger.verify("user:9", code, "reset") is True


def test_gate_opens_and_closes(store, clock):
    gate = VerificationGate(store, ttl_seconds=60)

    assert gate.is_open("user:1") is False
    gate.mark("user:1")
    assert gate.is_open("user:1") is True
    assert gate.consume("user:1") is True
    assert gate.consume("user:1") is False
    assert gate.is_open("user:1") is False

    gate.mark("user:1")
    clock.advance(61)
    assert gate.is_open("user:1") is False


def test_sweeper_purges_expired_entries(store, ledger, clock):
    ledger.issue("user:1", "reset")
    ledger.issue("user:2", "reset")
    clock.advance(300)
    ledger.issue("user:3", "reset")
    clock.advance(301)

    sweeper = ExpirySweeper(store, interval_seconds=60, enabled=False)

    assert sweeper.sweep() == 2
    assert len(store) == 1


def test_disabled_sweeper_does_not_start(store):
    sweeper = ExpirySweeper(store, interval_seconds=60, enabled=False)

    asyncio.run(sweeper.start())

    assert sweeper._task is None
