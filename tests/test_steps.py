import pytest

from armpiper.constants import (
    ARM_CAPTURE_PARAMETERS,
    ARM_CAPTURE_TEMPLATE,
    ARM_COMPUTE_NAME,
    ARM_DEPLOYMENT_NAME,
    ARM_IS_RESOURCE_GROUP_CREATED,
    ARM_LOCATION,
    ARM_RESOURCE_GROUP_NAME,
    ARM_TEMPLATE,
    ARM_TEMPLATE_PARAMETERS,
    ERROR,
)
from armpiper.exceptions import ArmRequestError
from armpiper.state import StateBag
from armpiper.steps import (
    StepCaptureImage,
    StepCreateResourceGroup,
    StepDeleteResourceGroup,
    StepDeployTemplate,
    StepPowerOffCompute,
)
from armpiper.types import StepAction


class FakeAdapter:
    """Records every call and fails the ones named in ``fail``."""

    def __init__(self, fail=(), exists=True):
        self.calls = []
        self.fail = set(fail)
        self.exists_result = exists

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if name in self.fail:
            raise ArmRequestError(500, "InternalError", f"{name} failed")

    async def create(self, resource_group_name, location):
        self._record("create", resource_group_name, location)
        return {"name": resource_group_name}

    async def exists(self, resource_group_name):
        self._record("exists", resource_group_name)
        return self.exists_result

    async def delete(self, resource_group_name):
        self._record("delete", resource_group_name)

    async def deploy(self, resource_group_name, deployment_name, template, parameters):
        self._record("deploy", resource_group_name, deployment_name, template, parameters)

    async def power_off(self, resource_group_name, compute_name):
        self._record("power_off", resource_group_name, compute_name)

    async def generalize(self, resource_group_name, compute_name):
        self._record("generalize", resource_group_name, compute_name)

    async def capture(self, resource_group_name, compute_name, parameters):
        self._record("capture", resource_group_name, compute_name, parameters)
        return {"resources": [{"name": "image"}]}


@pytest.fixture
def state():
    state = StateBag()
    state.put(ARM_RESOURCE_GROUP_NAME, "rg1")
    state.put(ARM_COMPUTE_NAME, "vm1")
    state.put(ARM_LOCATION, "westus")
    return state


@pytest.fixture
def messages():
    return []


@pytest.fixture
def errors():
    return []


def create_rg_step(adapter, messages, errors):
    return StepCreateResourceGroup(
        create=adapter.create,
        exists=adapter.exists,
        delete=adapter.delete,
        say=messages.append,
        error=errors.append,
    )


# ===== Create resource group =====


@pytest.mark.asyncio
async def test_create_resource_group(state, messages, errors):
    adapter = FakeAdapter()
    result = await create_rg_step(adapter, messages, errors).run(state)

    assert result is StepAction.CONTINUE
    assert adapter.calls == [("create", "rg1", "westus")]
    assert state.get(ARM_IS_RESOURCE_GROUP_CREATED) is True
    assert errors == []


@pytest.mark.asyncio
async def test_create_resource_group_failure_halts(state, messages, errors):
    adapter = FakeAdapter(fail={"create"})
    result = await create_rg_step(adapter, messages, errors).run(state)

    assert result is StepAction.HALT
    assert isinstance(state.get(ERROR), ArmRequestError)
    assert errors == [state.get(ERROR)]
    assert state.get(ARM_IS_RESOURCE_GROUP_CREATED) is False


@pytest.mark.asyncio
async def test_create_resource_group_cleanup_without_run_makes_no_calls(state, messages, errors):
    adapter = FakeAdapter()
    await create_rg_step(adapter, messages, errors).cleanup(state)

    assert adapter.calls == []
    assert errors == []


@pytest.mark.asyncio
async def test_create_resource_group_cleanup_deletes_created_group(state, messages, errors):
    adapter = FakeAdapter()
    step = create_rg_step(adapter, messages, errors)
    await step.run(state)
    await step.cleanup(state)

    assert adapter.calls[-1] == ("delete", "rg1")
    assert ARM_IS_RESOURCE_GROUP_CREATED not in state


@pytest.mark.asyncio
async def test_create_resource_group_cleanup_checks_unconfirmed_group(state, messages, errors):
    adapter = FakeAdapter(fail={"create"}, exists=True)
    step = create_rg_step(adapter, messages, errors)
    await step.run(state)
    await step.cleanup(state)

    assert adapter.calls[1:] == [("exists", "rg1"), ("delete", "rg1")]


@pytest.mark.asyncio
async def test_create_resource_group_cleanup_skips_missing_group(state, messages, errors):
    adapter = FakeAdapter(fail={"create"}, exists=False)
    step = create_rg_step(adapter, messages, errors)
    await step.run(state)
    await step.cleanup(state)

    assert adapter.calls[1:] == [("exists", "rg1")]


@pytest.mark.asyncio
async def test_create_resource_group_cleanup_reports_delete_failure(state, messages, errors):
    adapter = FakeAdapter(fail={"delete"})
    step = create_rg_step(adapter, messages, errors)
    await step.run(state)
    await step.cleanup(state)

    assert len(errors) == 1
    assert any("Please delete it manually" in message for message in messages)
    assert state.get(ARM_IS_RESOURCE_GROUP_CREATED) is True


# ===== Deploy template =====


@pytest.mark.asyncio
async def test_deploy_template_passes_state(state, messages, errors):
    adapter = FakeAdapter()
    state.put(ARM_DEPLOYMENT_NAME, "dep1")
    state.put(ARM_TEMPLATE, {"resources": []})
    state.put(ARM_TEMPLATE_PARAMETERS, {"vmName": {"value": "vm1"}})
    step = StepDeployTemplate(deploy=adapter.deploy, say=messages.append, error=errors.append)
    result = await step.run(state)

    assert result is StepAction.CONTINUE
    assert adapter.calls == [("deploy", "rg1", "dep1", {"resources": []}, {"vmName": {"value": "vm1"}})]
    assert step.unwind


@pytest.mark.asyncio
async def test_deploy_template_failure_halts(state, messages, errors):
    adapter = FakeAdapter(fail={"deploy"})
    state.put(ARM_DEPLOYMENT_NAME, "dep1")
    state.put(ARM_TEMPLATE, {})
    state.put(ARM_TEMPLATE_PARAMETERS, {})
    step = StepDeployTemplate(deploy=adapter.deploy, say=messages.append, error=errors.append)

    assert await step.run(state) is StepAction.HALT
    assert ERROR in state


# ===== Power off and capture =====


@pytest.mark.asyncio
async def test_power_off_compute(state, messages, errors):
    adapter = FakeAdapter()
    step = StepPowerOffCompute(power_off=adapter.power_off, say=messages.append, error=errors.append)

    assert await step.run(state) is StepAction.CONTINUE
    assert adapter.calls == [("power_off", "rg1", "vm1")]
    assert not step.unwind


@pytest.mark.asyncio
async def test_power_off_compute_failure_halts(state, messages, errors):
    adapter = FakeAdapter(fail={"power_off"})
    step = StepPowerOffCompute(power_off=adapter.power_off, say=messages.append, error=errors.append)

    assert await step.run(state) is StepAction.HALT
    assert len(errors) == 1


@pytest.mark.asyncio
async def test_capture_image_stores_template(state, messages, errors):
    adapter = FakeAdapter()
    state.put(ARM_CAPTURE_PARAMETERS, {"vhdPrefix": "packer"})
    step = StepCaptureImage(
        generalize=adapter.generalize, capture=adapter.capture, say=messages.append, error=errors.append
    )

    assert await step.run(state) is StepAction.CONTINUE
    assert adapter.calls == [("generalize", "rg1", "vm1"), ("capture", "rg1", "vm1", {"vhdPrefix": "packer"})]
    assert state.get(ARM_CAPTURE_TEMPLATE) == {"resources": [{"name": "image"}]}


@pytest.mark.asyncio
async def test_capture_image_skips_capture_when_generalize_fails(state, messages, errors):
    adapter = FakeAdapter(fail={"generalize"})
    state.put(ARM_CAPTURE_PARAMETERS, {})
    step = StepCaptureImage(
        generalize=adapter.generalize, capture=adapter.capture, say=messages.append, error=errors.append
    )

    assert await step.run(state) is StepAction.HALT
    assert [call[0] for call in adapter.calls] == ["generalize"]
    assert ARM_CAPTURE_TEMPLATE not in state


# ===== Delete resource group =====


@pytest.mark.asyncio
async def test_delete_resource_group_after_create(state, messages, errors):
    adapter = FakeAdapter()
    state.put(ARM_IS_RESOURCE_GROUP_CREATED, True)
    step = StepDeleteResourceGroup(delete=adapter.delete, say=messages.append, error=errors.append)

    assert await step.run(state) is StepAction.CONTINUE
    assert adapter.calls == [("delete", "rg1")]
    assert ARM_IS_RESOURCE_GROUP_CREATED not in state


@pytest.mark.asyncio
async def test_delete_resource_group_skips_uncreated_group(state, messages, errors):
    adapter = FakeAdapter()
    step = StepDeleteResourceGroup(delete=adapter.delete, say=messages.append, error=errors.append)

    assert await step.run(state) is StepAction.CONTINUE
    assert adapter.calls == []
