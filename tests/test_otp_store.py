from storefront.services.auth.otp_store import OTPLedger, generate_code


def test_generated_codes_are_six_digits_in_range():
    for _ in range(200):
        code = generate_code()
        assert len(code) == 6
        assert 100000 <= int(code) <= 999999


def test_put_replaces_pending_code(clock):
    ledger = OTPLedger(clock=clock)
    ledger.put("u1", 300)
    second = ledger.put("u1", 300)

    assert len(ledger) == 1
    assert ledger.peek("u1").code == second
    assert ledger.peek("u1").expires_at == clock.now + 300


def test_delete_reports_whether_it_removed(clock):
    ledger = OTPLedger(clock=clock)
    ledger.put("u1", 300)

    assert ledger.delete("u1") is True
    assert ledger.delete("u1") is False
    assert ledger.peek("u1") is None


def test_delete_of_stale_entry_keeps_regenerated_code(clock):
    ledger = OTPLedger(clock=clock)
    ledger.put("u1", 300)
    stale = ledger.peek("u1")
    ledger.put("u1", 300)

    assert ledger.delete("u1", stale) is False
    assert ledger.peek("u1") is not None
