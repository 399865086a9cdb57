import asyncio
import logging

import pytest
from solders.keypair import Keypair

from vault_keeper.pipeline import run as pipeline_run
from vault_keeper.settings import KeeperSettings
from vault_keeper.state import AppState


@pytest.mark.asyncio
async def test_run_operation_completes_within_timeout(services):
    settings = KeeperSettings(global_timeout_seconds=0.2)
    state = AppState(settings=settings, logger=logging.getLogger("test"))

    async def flow(ctx):
        await asyncio.sleep(0.01)
        return ctx.vault_index

    result = await pipeline_run.run_operation(
        state, "deposit", flow, services=services, vault_index=4
    )

    assert result == 4


@pytest.mark.asyncio
async def test_run_operation_raises_timeout(services):
    settings = KeeperSettings(global_timeout_seconds=0.05)
    state = AppState(settings=settings, logger=logging.getLogger("test"))

    async def slow(ctx):
        await asyncio.sleep(0.2)

    with pytest.raises(asyncio.TimeoutError, match="exceeded global timeout"):
        await pipeline_run.run_operation(
            state, "redeem", slow, services=services, vault_index=1
        )


@pytest.mark.asyncio
async def test_timeout_disabled_runs_to_completion(services):
    settings = KeeperSettings(global_timeout_seconds=None)
    state = AppState(settings=settings, logger=logging.getLogger("test"))

    async def flow(ctx):
        await asyncio.sleep(0.01)
        return "done"

    result = await pipeline_run.run_operation(state, "valuate", flow, services=services)
    assert result == "done"


@pytest.mark.asyncio
async def test_confirm_is_wired_into_context(services):
    state = AppState(settings=KeeperSettings(), logger=logging.getLogger("test"))
    prompts: list[str] = []

    def confirm(prompt: str) -> bool:
        prompts.append(prompt)
        return True

    async def flow(ctx):
        return ctx.confirm("go")

    assert await pipeline_run.run_operation(
        state, "pause", flow, services=services, confirm=confirm
    )
    assert prompts == ["go"]


def test_build_services_without_signer_is_read_only():
    services = pipeline_run.build_services(KeeperSettings())
    assert services.submitter is None
    assert services.reader.program_id == KeeperSettings().program_pubkey


def test_build_services_with_signer():
    signer = Keypair()
    settings = KeeperSettings(confirm_timeout_seconds=12)
    services = pipeline_run.build_services(settings, signer)
    assert services.signer == signer.pubkey()
    assert services.submitter.confirm_timeout == 12
    assert services.rpc.commitment == "confirmed"
