from unittest.mock import MagicMock

import pytest

from vault_keeper.errors import OperationCancelled


def test_decision_point_passes_with_assume_yes(make_ctx):
    make_ctx().decision_point("deposit 1")


def test_dry_run_cancels_at_decision_point(make_ctx, state):
    state.settings = state.settings.model_copy(update={"dry_run": True})
    with pytest.raises(OperationCancelled, match="Dry run, nothing submitted"):
        make_ctx().decision_point("deposit 1")


def test_declined_confirmation_cancels(make_ctx, state):
    state.settings = state.settings.model_copy(update={"assume_yes": False})
    ctx = make_ctx()
    ctx.confirm = MagicMock(return_value=False)

    with pytest.raises(OperationCancelled, match="Declined"):
        ctx.decision_point("redeem 5 shares")
    ctx.confirm.assert_called_once_with("redeem 5 shares. Submit?")


def test_accepted_confirmation_continues(make_ctx, state):
    state.settings = state.settings.model_copy(update={"assume_yes": False})
    ctx = make_ctx()
    ctx.confirm = MagicMock(return_value=True)
    ctx.decision_point("pause vault 0")
    ctx.confirm.assert_called_once()


def test_required_properties_raise_before_valuation(make_ctx):
    ctx = make_ctx(vault_index=None)
    with pytest.raises(RuntimeError, match="Vault index"):
        _ = ctx.vault_index_required
    with pytest.raises(RuntimeError, match="valuate_vault"):
        _ = ctx.snapshot_required
    with pytest.raises(RuntimeError, match="valuate_vault"):
        _ = ctx.valuation_required


def test_read_only_services_have_no_signer(make_ctx, services):
    services.submitter = None
    with pytest.raises(RuntimeError, match="No signer configured"):
        _ = make_ctx().services.signer


def test_steps_are_numbered(make_ctx, caplog):
    ctx = make_ctx()
    with caplog.at_level("INFO", logger="test"):
        ctx.step("first %d", 1)
        ctx.step.warning("second")
    assert [r.getMessage() for r in caplog.records] == ["STEP 1: first 1", "STEP 2: second"]
