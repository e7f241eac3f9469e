"""
Tests for sardis_recovery.ownership.
"""
from __future__ import annotations

from sardis_recovery.models import GuardianRecord, GuardianStatus
from sardis_recovery.ownership import is_owner, permitted_transitions


OWNER = "0xAbCdEf0000000000000000000000000000000001"


def make_record(status=GuardianStatus.PENDING):
    return GuardianRecord(
        guardian_id="g1",
        encrypted_share="cipher",
        timestamp=1,
        owner=OWNER,
        status=status,
    )


class TestIsOwner:
    """Tests for is_owner."""

    def test_exact_match(self):
        assert is_owner(OWNER, OWNER) is True

    def test_case_insensitive(self):
        """Should compare checksummed and lowercase addresses as equal."""
        assert is_owner(OWNER.lower(), OWNER) is True
        assert is_owner(OWNER.upper(), OWNER.lower()) is True

    def test_ignores_surrounding_whitespace(self):
        assert is_owner(f"  {OWNER} ", OWNER) is True

    def test_different_address(self):
        assert is_owner("0xBBB", "0xAAA") is False

    def test_empty_identities_never_match(self):
        """Should not treat two missing identities as the same owner."""
        assert is_owner("", "") is False
        assert is_owner(None, OWNER) is False
        assert is_owner(OWNER, None) is False


class TestPermittedTransitions:
    """Tests for permitted_transitions."""

    def test_pending_can_only_activate(self):
        assert permitted_transitions(make_record(), OWNER) == (GuardianStatus.ACTIVE,)

    def test_active_can_only_deactivate(self):
        record = make_record(GuardianStatus.ACTIVE)
        assert permitted_transitions(record, OWNER.lower()) == (GuardianStatus.INACTIVE,)

    def test_inactive_can_reactivate(self):
        record = make_record(GuardianStatus.INACTIVE)
        assert permitted_transitions(record, OWNER) == (GuardianStatus.ACTIVE,)

    def test_non_owner_gets_no_actions(self):
        assert permitted_transitions(make_record(), "0xBBB") == ()

    def test_disconnected_principal_gets_no_actions(self):
        assert permitted_transitions(make_record(GuardianStatus.ACTIVE), None) == ()
