"""Shared fixtures: isolated settings and mocked keeper services."""

from __future__ import annotations

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest
from solders.keypair import Keypair

from vault_keeper.pipeline.context import KeeperServices, PipelineContext
from vault_keeper.settings import KeeperSettings
from vault_keeper.state import AppState


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep developer config files and env vars out of tests."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    for var in (
        "VAULT_KEEPER_CONFIG",
        "VAULT_KEEPER_PRIVATE_KEY",
        "VAULT_KEEPER_KEYPAIR_PATH",
        "VAULT_KEEPER_RPC_URL",
        "VAULT_KEEPER_DRY_RUN",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def keeper() -> Keypair:
    return Keypair()


@pytest.fixture
def settings() -> KeeperSettings:
    return KeeperSettings(dry_run=False, assume_yes=True, pre_check_retries=0)


@pytest.fixture
def state(settings) -> AppState:
    return AppState(settings=settings, logger=logging.getLogger("test"))


@pytest.fixture
def services(keeper) -> KeeperServices:
    """Services with every collaborator mocked and a keeper signer."""
    submitter = MagicMock()
    submitter.payer = keeper.pubkey()
    submitter.submit = AsyncMock(
        side_effect=lambda *a, **k: f"sig{submitter.submit.await_count}"
    )
    swaps = MagicMock()
    swaps.is_stale = MagicMock(return_value=False)
    return KeeperServices(
        rpc=MagicMock(),
        reader=MagicMock(),
        prices=MagicMock(),
        swaps=swaps,
        pools=MagicMock(),
        submitter=submitter,
    )


@pytest.fixture
def make_ctx(state, services):
    def _make(vault_index: int | None = 0) -> PipelineContext:
        return PipelineContext(
            state=state,
            services=services,
            vault_index=vault_index,
            wall_clock=lambda: 1_700_000_000,
        )

    return _make
